# services/slugs.py
import logging
import secrets
import string
import time

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schema_probe import SchemaFeatures

logger = logging.getLogger(__name__)

SLUG_ALPHABET = string.ascii_lowercase + string.digits
BASE36_DIGITS = string.digits + string.ascii_lowercase
SLUG_LENGTH = 8
MAX_SLUG_ATTEMPTS = 10


def generate_random_slug() -> str:
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(SLUG_LENGTH))


def _to_base36(number: int) -> str:
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_DIGITS[remainder])
    return "".join(reversed(digits)) or "0"


def fallback_slug(now_ms: int | None = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"dept-{_to_base36(now_ms)}"


def is_slug_unique(db: Session, features: SchemaFeatures, slug: str) -> bool:
    if not features.department_slug:
        return True
    try:
        count = db.execute(
            text("SELECT COUNT(*) FROM Departments WHERE Slug = :slug"), {"slug": slug}
        ).scalar()
    except SQLAlchemyError as e:
        logger.error(f"Error checking slug uniqueness: {e}")
        return False
    return count == 0


def generate_unique_slug(db: Session, features: SchemaFeatures) -> str:
    for _ in range(MAX_SLUG_ATTEMPTS):
        slug = generate_random_slug()
        if is_slug_unique(db, features, slug):
            return slug

    slug = fallback_slug()
    logger.warning(f"No unique slug after {MAX_SLUG_ATTEMPTS} attempts, using {slug}")
    return slug
