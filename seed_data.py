import os

from sqlmodel import Session, select
from app.core.security import get_password_hash
from app.db.session import engine, create_db_and_tables
from app.models import Category, Tag, User, UserRole


CATEGORIES = [
    ("Writing Assistants", "writing-assistants", "Drafting, editing and copywriting tools", "pen"),
    ("Image Generation", "image-generation", "Text-to-image and image editing models", "image"),
    ("Code Assistants", "code-assistants", "Completion, review and refactoring helpers", "code"),
    ("Productivity", "productivity", "Notes, scheduling and workflow automation", "zap"),
    ("Audio & Voice", "audio-voice", "Speech synthesis, transcription and music", "mic"),
]

TAGS = [
    ("Open Source", "open-source", "#10B981"),
    ("API", "api", "#3B82F6"),
    ("Free Tier", "free-tier", "#F59E0B"),
    ("Team", "team", "#8B5CF6"),
    ("Mobile", "mobile", "#EC4899"),
]


def seed_reference_data():
    print("Creating database and tables...")
    create_db_and_tables()

    with Session(engine) as session:
        # Check if categories already exist to avoid duplicates
        existing = session.exec(select(Category)).all()
        if existing:
            print(f"Database already contains {len(existing)} categories. Skipping seed.")
            return

        print("Seeding categories and tags...")
        for name, slug, description, icon in CATEGORIES:
            session.add(Category(name=name, slug=slug, description=description, icon=icon))
        for name, slug, color in TAGS:
            session.add(Tag(name=name, slug=slug, color=color))

        admin_email = os.environ.get("ADMIN_EMAIL")
        admin_password = os.environ.get("ADMIN_PASSWORD")
        if admin_email and admin_password:
            session.add(User(
                email=admin_email.lower(),
                name="Admin",
                password_hash=get_password_hash(admin_password),
                role=UserRole.ADMIN,
                is_verified=True,
            ))
            print(f"Created admin user {admin_email}")

        session.commit()
        print(f"Successfully seeded {len(CATEGORIES)} categories and {len(TAGS)} tags!")


if __name__ == "__main__":
    seed_reference_data()
