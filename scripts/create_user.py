#!/usr/bin/env python3
"""CLI script to create a CRM user with the default pipeline.

Usage:
    uv run python scripts/create_user.py --email owner@example.com --password changeme123
    uv run python scripts/create_user.py --email owner@example.com --password changeme123 --full-name "Dana Owner"

Connects directly to the database using DATABASE_URL from environment or .env file.
Creates the profile and seeds Lead / Qualified / Proposal / Negotiation / Won / Lost.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Ensure project root is on sys.path so we can import src.crm
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


async def create_user(email: str, password: str, full_name: str) -> None:
    """Create the user by calling the provisioning service directly."""
    from src.crm.core.database import close_db, get_session, init_db
    from src.crm.deals.pipeline import PipelineService
    from src.crm.deals.repository import DealRepository
    from src.crm.services.user_provisioning import provision_user
    from src.crm.services.users import UserRepository

    await init_db()

    print(f"Creating user: email={email}")
    user = await provision_user(
        UserRepository(session_factory=get_session),
        PipelineService(DealRepository(session_factory=get_session)),
        email,
        password,
        full_name=full_name,
    )
    print("User created successfully:")
    print(f"  ID:    {user.id}")
    print(f"  Email: {user.email}")

    await close_db()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a CRM user with the default pipeline")
    parser.add_argument("--email", required=True, help="Login email")
    parser.add_argument("--password", required=True, help="Login password (min 8 chars)")
    parser.add_argument("--full-name", default="", help="Display name")
    args = parser.parse_args()

    if len(args.password) < 8:
        parser.error("--password must be at least 8 characters")

    from src.crm.errors import EmailTakenError

    try:
        asyncio.run(create_user(args.email, args.password, args.full_name))
    except EmailTakenError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
