import argparse
import logging

from database import init_db, SessionLocal, User
from auth import register_user
from categories import seed_default_categories
from errors import AuthError

logger = logging.getLogger(__name__)

def seed(db, demo_user: bool = False) -> dict:
    """Create default categories and, optionally, a demo account."""
    created = {"categories": seed_default_categories(db), "users": 0}

    if demo_user:
        if db.query(User).filter(User.email == "demo@example.com").first():
            logger.info("Demo user already exists. Skipping.")
        else:
            try:
                register_user(db, "demo", "demo@example.com", "demo1234")
                created["users"] = 1
            except AuthError as e:
                logger.warning("Could not create demo user: %s", e)
    return created

def main():
    parser = argparse.ArgumentParser(description="Create tables and seed default data")
    parser.add_argument("--demo-user", action="store_true",
                        help="Also create demo@example.com / demo1234")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    init_db()
    db = SessionLocal()
    try:
        created = seed(db, demo_user=args.demo_user)
    finally:
        db.close()
    print(f"Seeded {created['categories']} categories and {created['users']} users.")

if __name__ == "__main__":
    main()
