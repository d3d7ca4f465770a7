"""
Configuration for the NJREAP back office.
"""

from .settings import Settings, get_settings
from .supabase_config import get_supabase_config, get_schema_info

__all__ = [
    'Settings',
    'get_settings',
    'get_supabase_config',
    'get_schema_info',
]
