"""
Supabase configuration for the NJREAP back office.
Both the public site and the admin views read the same Supabase project.
"""

from typing import Any, Dict

from .settings import get_settings


def get_supabase_config() -> Dict[str, str]:
    """Get Supabase URL and keys from settings"""
    settings = get_settings()
    return {
        "url": settings.SUPABASE_URL or "",
        "service_role_key": settings.SUPABASE_SERVICE_ROLE_KEY or "",
        "anon_key": settings.SUPABASE_ANON_KEY or "",
    }


# Database schema information for reference
SCHEMA_INFO = {
    "tables": {
        "jobs": "Booked and quoted engagements with status lifecycle and Stripe invoice tracking",
        "service_pricing": "Tier-keyed price table (service_id, tier_name, price)",
        "discount_codes": "Active percentage or flat discount codes",
        "rate_limits": "Per-identifier request counters for public endpoints",
        "booking_attempts": "Idempotency ledger for booking submissions",
        "profiles": "User profiles with admin role flag",
        "admin_settings": "Notification emails and weekly report toggle",
    },
    "functions": {
        "check_rate_limit": "Atomically increment and compare a rate limit window",
        "get_admin_jobs": "Return all job rows, bypassing row level security",
    },
    "enums": {
        "job_status": [
            "pending", "quoted", "accepted", "in_progress", "completed",
            "cancelled", "invoice_sent", "invoice_paid",
        ],
        "service_type": [
            "photography", "floor_plans", "virtual_tour", "aerial_photography", "appraisal",
        ],
    },
}


def get_schema_info() -> Dict[str, Any]:
    """Get database schema information"""
    return SCHEMA_INFO
