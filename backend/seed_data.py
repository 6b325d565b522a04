"""
Seed script to populate the database with demo data
Run with: python -m seed_data
"""
import asyncio
from datetime import date
from skillvault.database import async_session_maker, init_db
from skillvault.models import User, Skill, UserSkill, SkillLevel, Certification, VerificationStatus
from skillvault.services.auth import get_password_hash


async def seed_database():
    await init_db()

    async with async_session_maker() as db:
        alice = User(
            email="alice@example.com",
            hashed_password=get_password_hash("password123"),
            name="Alice Martin",
            profile_url="alice-martin",
            bio="Full stack developer",
            public_profile=True
        )
        bob = User(
            email="bob@example.com",
            hashed_password=get_password_hash("password123"),
            name="Bob Okafor",
            profile_url="bob-okafor",
            bio="Data engineer moving into ML",
            public_profile=True
        )
        db.add_all([alice, bob])
        await db.flush()

        skills = {
            name: Skill(name=name, category=category)
            for name, category in [
                ("JavaScript", "language"),
                ("React", "framework"),
                ("Node.js", "framework"),
                ("SQL", "database"),
                ("Python", "language"),
                ("Machine Learning", "domain"),
                ("AWS", "cloud"),
            ]
        }
        db.add_all(skills.values())
        await db.flush()

        for user, holdings in [
            (alice, [("JavaScript", SkillLevel.EXPERT), ("React", SkillLevel.ADVANCED),
                     ("Node.js", SkillLevel.ADVANCED), ("SQL", SkillLevel.INTERMEDIATE)]),
            (bob, [("Python", SkillLevel.ADVANCED), ("SQL", SkillLevel.ADVANCED),
                   ("Machine Learning", SkillLevel.INTERMEDIATE), ("AWS", SkillLevel.BEGINNER),
                   ("JavaScript", SkillLevel.BEGINNER)]),
        ]:
            for name, level in holdings:
                db.add(UserSkill(user_id=user.id, skill=skills[name], level=level))

        db.add_all([
            Certification(
                user_id=alice.id,
                title="AWS Cloud Practitioner",
                issuer="Amazon Web Services",
                issue_date=date(2023, 5, 12),
                credential_id="AWS-CP-1234",
                verification_status=VerificationStatus.PENDING
            ),
            Certification(
                user_id=bob.id,
                title="AWS Cloud Practitioner",
                issuer="Amazon Web Services",
                issue_date=date(2022, 11, 3),
                verification_status=VerificationStatus.PENDING
            ),
            Certification(
                user_id=bob.id,
                title="Data Science Certification",
                issuer="Coursera",
                issue_date=date(2024, 2, 20),
                verification_status=VerificationStatus.PENDING
            ),
        ])

        await db.commit()
        print("✅ Seeded 2 users, 7 skills and 3 certifications")


if __name__ == "__main__":
    asyncio.run(seed_database())
