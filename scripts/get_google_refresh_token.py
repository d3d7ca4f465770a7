#!/usr/bin/env python3
"""
One-time consent flow that prints a refresh token for GOOGLE_REFRESH_TOKEN.

Usage: python scripts/get_google_refresh_token.py path/to/client_secret.json
"""

import argparse

from njreap_services.adapters.google_calendar import obtain_refresh_token


def main():
    parser = argparse.ArgumentParser(description="Obtain a Google Calendar refresh token")
    parser.add_argument("client_secrets", help="OAuth client secrets JSON downloaded from Google Cloud")
    parser.add_argument("--port", type=int, default=0, help="Local port for the OAuth redirect")
    args = parser.parse_args()

    token = obtain_refresh_token(args.client_secrets, port=args.port)
    print("Add this to your .env:")
    print(f"GOOGLE_REFRESH_TOKEN={token}")


if __name__ == "__main__":
    main()
