"""
Seed a local database with a demo candidate who is eligible for a resume.

Run:
    python scripts/seed.py

Prints the candidate's API key (only shown once).
"""
import asyncio
import json
from typing import Optional

from sqlalchemy import select

from resumegen.config import get_settings
from resumegen.database import Database
from resumegen.models import Application, Profile, User

DEMO_EMAIL = "candidate@example.com"


async def seed(database: Database) -> Optional[str]:
    """Create the demo candidate. Returns their API key, or None if they already exist."""
    async with database.session() as db:
        result = await db.execute(select(User).where(User.email == DEMO_EMAIL))
        if result.scalar_one_or_none():
            return None

        user = User(email=DEMO_EMAIL, name="Candidate Example")
        api_key = user.issue_api_key()
        db.add(user)
        await db.flush()

        db.add(Profile(
            user_id=user.id,
            headline="Reliable warehouse and general labor candidate",
            skills=json.dumps(["Forklift", "Inventory", "Teamwork"]),
            experience=json.dumps([
                {"role": "Warehouse Associate", "company": "Acme Co", "start": "2022", "end": "2024",
                 "summary": "Picked and packed 200+ orders per shift."},
            ]),
        ))
        db.add_all([
            Application(user_id=user.id, job_title="General Labor", company_name="Acme Co"),
            Application(user_id=user.id, job_title="Warehouse Associate", company_name="Acme Co"),
        ])
        await db.commit()
        return api_key


async def main() -> None:
    settings = get_settings()
    database = Database(settings.database_url)
    try:
        await database.init_models()
        print("Seeding database...")
        api_key = await seed(database)
        if api_key is None:
            print("Candidate already exists, nothing to do")
        else:
            print(f"Created candidate {DEMO_EMAIL}")
            print(f"API key: {api_key}")
    finally:
        await database.dispose()


if __name__ == "__main__":
    asyncio.run(main())
