# scripts/create_superadmin.py
"""
Bootstrap the first super-admin; registration itself needs a logged-in super-admin.

Run from the project root: python -m scripts.create_superadmin admin --password ...
"""
import argparse

from sqlalchemy import text
from database import create_db_engine, make_session_factory
from main import prepare_database
from routers.auth import create_user, SUPER_ADMIN, ADMIN


def ensure_user(username: str, password: str, level: int = SUPER_ADMIN, database_url: str | None = None) -> bool:
    engine = create_db_engine(database_url)
    try:
        features = prepare_database(engine)
        db = make_session_factory(engine)()
        try:
            exists = db.execute(
                text("SELECT 1 FROM Users WHERE Username = :username"), {"username": username}
            ).first()
            if exists:
                print(f"[OK] {username} already exists")
                return False
            create_user(db, features, username, password, level)
            print(f"[OK] created {username} (level {level})")
            return True
        finally:
            db.close()
    finally:
        engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("username")
    parser.add_argument("--password", required=True)
    parser.add_argument("--level", type=int, choices=[SUPER_ADMIN, ADMIN], default=SUPER_ADMIN)
    parser.add_argument("--database-url", default=None)
    args = parser.parse_args()

    ensure_user(args.username, args.password, args.level, args.database_url)
