# code_architect/seed.py
"""Create the demo accounts. Safe to run more than once."""
import logging

from .database import SessionLocal, init_db
from .routers.auth import hash_password
from .storage import Storage

logger = logging.getLogger(__name__)

DEMO_USERS = [
    {"username": "Alice", "email": "alice@example.com", "password": "password123"},
    {"username": "Bob", "email": "bob@example.com", "password": "password123"},
]


def seed(db) -> int:
    storage = Storage(db)
    created = 0
    for entry in DEMO_USERS:
        if storage.get_user_by_email(entry["email"]) or storage.get_user_by_username(entry["username"]):
            logger.info("Skipping %s, already present", entry["email"])
            continue
        storage.create_user(
            username=entry["username"],
            email=entry["email"],
            password_hash=hash_password(entry["password"]),
        )
        created += 1
    return created


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    init_db()
    db = SessionLocal()
    try:
        created = seed(db)
    finally:
        db.close()
    logger.info("Seeded %d demo users", created)


if __name__ == "__main__":
    main()
