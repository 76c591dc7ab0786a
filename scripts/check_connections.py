#!/usr/bin/env python3
"""
Connection Check Script

Run this to verify the database, file storage and LLM connections.
Usage: python scripts/check_connections.py
"""

from jobpilot.core.config import get_settings
from jobpilot.db.mongodb import test_mongo_connection
from jobpilot.db.postgres import test_postgres_connection
from jobpilot.services.llm_client import get_llm_client


def main():
    settings = get_settings()
    print("=" * 50)
    print("JOBPILOT - CONNECTION CHECK")
    print("=" * 50)

    print("\n[1] Checking database...")
    if settings.database_url:
        print(f"    URL: {settings.database_url}")
    else:
        print(f"    URL: postgresql://{settings.postgres_user}:****@{settings.postgres_host}:{settings.postgres_port}/{settings.postgres_db}")
    print("    Database: " + ("CONNECTED" if test_postgres_connection() else "FAILED"))

    print("\n[2] Checking MongoDB (resume files)...")
    print(f"    URI: {settings.mongodb_uri}")
    print(f"    Database: {settings.mongodb_db}")
    print("    MongoDB: " + ("CONNECTED" if test_mongo_connection() else "FAILED"))

    print("\n[3] Checking LLM API...")
    if settings.llm_api_key:
        print(f"    Base URL: {settings.llm_base_url}")
        print("    LLM: " + ("CONNECTED" if get_llm_client().test_connection() else "FAILED"))
    else:
        print("    LLM: API key not configured (skipped)")

    print("\n[4] Email...")
    print("    SMTP: " + (f"{settings.smtp_host}:{settings.smtp_port}" if settings.smtp_host else "not configured (emails are logged only)"))

    print("\n" + "=" * 50)
    print("Connection check complete!")
    print("=" * 50)


if __name__ == "__main__":
    main()
