"""Bootstrap a fresh database: the Owner account plus starter categories.

The Owner can only be created here; the API never creates or promotes one.
"""
import argparse
import asyncio
import getpass

from sqlalchemy import select

from newsdesk.database import Base, engine, session_scope
from newsdesk.models import Category, User, UserRole
from newsdesk.security import hash_password
from newsdesk.slugs import generate_slug

DEFAULT_CATEGORIES = ["Vijesti", "Sport", "Kultura", "Ekonomija", "Zabava", "Lifestyle"]


async def seed(username: str, password: str, full_name: str, email: str, create_tables: bool) -> None:
    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async with session_scope() as session:
        owner = await session.scalar(select(User).where(User.role == UserRole.OWNER.value))
        if owner is None:
            session.add(User(
                username=username,
                password_hash=hash_password(password),
                full_name=full_name,
                email=email,
                role=UserRole.OWNER.value,
                is_active=True,
            ))
            print(f"  Created owner account '{username}'")
        else:
            print(f"  Owner account already exists ('{owner.username}'), skipping")

        existing = set((await session.scalars(select(Category.slug))).all())
        created = 0
        for name in DEFAULT_CATEGORIES:
            slug = generate_slug(name)
            if slug not in existing:
                session.add(Category(name=name, slug=slug))
                created += 1
        print(f"  Created {created} categories")
    await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Seed the newsdesk database")
    parser.add_argument("--username", default="owner")
    parser.add_argument("--full-name", default="Site Owner")
    parser.add_argument("--email", default="owner@example.com")
    parser.add_argument("--password", help="Prompted for when omitted")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create tables directly instead of relying on alembic migrations",
    )
    args = parser.parse_args()
    password = args.password or getpass.getpass("Owner password: ")
    asyncio.run(seed(args.username, password, args.full_name, args.email, args.create_tables))


if __name__ == "__main__":
    main()
