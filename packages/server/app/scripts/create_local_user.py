"""
Script to create a local user and print a bearer token for testing the API.
"""

import argparse
import asyncio
import os
import sys

from sqlmodel import select

# Add the project root to sys.path to allow importing from 'app'
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from app.core.auth import create_jwt
from app.core.database import engine, get_session_context
from app.models.user import User


async def create_user(email: str, full_name: str | None):
    async with get_session_context() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if not user:
            user = User(email=email, full_name=full_name)
            session.add(user)
            await session.flush()
            print(f"Created user: {email}")
        else:
            print(f"User {email} already exists.")

        token = create_jwt(user.id)

    await engine.dispose()
    print(f"User id: {user.id}")
    print(f"Bearer token: {token}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local user and print a token.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--full-name", default=None, help="Display name for the user")

    args = parser.parse_args()

    asyncio.run(create_user(args.email, args.full_name))
