#!/usr/bin/env python3
"""
Startup script for the NJREAP API service
"""

import argparse
import sys

from njreap_services.config import get_settings


def check_configuration():
    """Report which integrations have credentials."""
    settings = get_settings()
    checks = {
        "Supabase": settings.SUPABASE_URL and settings.SUPABASE_SERVICE_ROLE_KEY,
        "Property lookup": settings.NJPR_API_KEY,
        "Google Calendar": settings.GOOGLE_CLIENT_ID and settings.GOOGLE_CLIENT_SECRET and settings.GOOGLE_REFRESH_TOKEN,
        "Google Places": settings.GOOGLE_PLACES_API_KEY,
        "Resend": settings.RESEND_API_KEY,
    }
    for name, configured in checks.items():
        print(f"{'✅' if configured else '⚠️ '} {name}{'' if configured else ' (not configured)'}")
    return bool(checks["Supabase"])


def start_api(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    import uvicorn

    print(f"🚀 Starting NJREAP API on {host}:{port}")
    uvicorn.run(
        "njreap_services.services.api_service:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


def main():
    parser = argparse.ArgumentParser(description="Start the NJREAP API service")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    parser.add_argument("--check-only", action="store_true", help="Only check configuration and exit")
    args = parser.parse_args()

    print("📋 Checking configuration...")
    if not check_configuration():
        print("❌ SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required")
        sys.exit(1)
    if args.check_only:
        return

    start_api(host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
