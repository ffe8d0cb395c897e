#!/usr/bin/env python3
"""Create or promote a ledger admin user."""

import asyncio

from sqlalchemy import select

from safari_ledger.core.security import get_password_hash, verify_password
from safari_ledger.database import async_session_maker
from safari_ledger.models.user import User, UserRole


async def create_admin(email: str, password: str, name: str) -> None:
    """Create an admin user if it doesn't exist, otherwise promote it."""
    async with async_session_maker() as session:
        result = await session.execute(select(User).where(User.email == email))
        existing = result.scalar_one_or_none()

        if existing:
            # Keep the stored hash when the password is unchanged
            if not existing.password_hash or not verify_password(password, existing.password_hash):
                existing.password_hash = get_password_hash(password)
            existing.role = UserRole.ADMIN
            existing.is_active = True
            existing.name = name
            await session.commit()
            print(f"Updated existing admin user: {email}")
        else:
            session.add(
                User(
                    email=email,
                    password_hash=get_password_hash(password),
                    role=UserRole.ADMIN,
                    name=name,
                    is_active=True,
                )
            )
            await session.commit()
            print(f"Created admin user: {email}")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Create an admin user")
    parser.add_argument("--email", required=True, help="Admin email")
    parser.add_argument("--password", required=True, help="Admin password")
    parser.add_argument("--name", default="SafariPlus Admin", help="Display name")

    args = parser.parse_args()

    asyncio.run(create_admin(email=args.email, password=args.password, name=args.name))
