"""
Service layer: Supabase persistence, rate limiting, admin views and the HTTP API.

The API module is imported on demand to keep FastAPI out of library use.
"""
