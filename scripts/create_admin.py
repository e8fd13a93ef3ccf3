"""Create a privileged account (admin by default) in the database.

Usage:
    python -m scripts.create_admin --email admin@test.com --password Admin1234!
    python -m scripts.create_admin --email ana@test.com --password Model1234! \
        --username Ana --role model
"""

import argparse
import asyncio

from app.core.database import async_session_factory, engine
from app.core.security import hash_password
from app.repositories.user_repo import UserRepository


async def create_account(email: str, password: str, username: str, role: str) -> None:
    """Create the account unless the email is already registered."""
    async with async_session_factory() as session:
        repo = UserRepository(session)
        existing = await repo.find_by_email(email)
        if existing:
            print(f"User with email '{email}' already exists (id={existing.id}).")
            return

        hashed = await hash_password(password)
        user = await repo.create(
            email=email,
            hashed_password=hashed,
            username=username,
            role=role,
        )
        await session.commit()
        print(f"{role.capitalize()} user created: {email} (id={user.id})")

    await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create an admin or model account")
    parser.add_argument("--email", required=True, help="Account email")
    parser.add_argument("--password", required=True, help="Account password")
    parser.add_argument("--username", default="admin", help="Display name")
    parser.add_argument(
        "--role", default="admin", choices=["admin", "model"], help="Account role"
    )
    args = parser.parse_args()

    asyncio.run(
        create_account(args.email.lower().strip(), args.password, args.username, args.role)
    )


if __name__ == "__main__":
    main()
