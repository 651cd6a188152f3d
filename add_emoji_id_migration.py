#!/usr/bin/env python3
"""
Database migration script to add the EmojiID column to SurveyAnswers.
Answers written by older kiosks only carry the emoji character; newer
ones also store the numeric scale id (1 = Excellent .. 5 = Terrible).
"""

from sqlalchemy import text
from sqlalchemy.engine import Engine
from database import create_db_engine
from schema_probe import ANSWERS, table_columns
import logging

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def migrate_answers_add_emoji_id(engine: Engine | None = None):
    """Add the EmojiID column to SurveyAnswers if it is missing"""
    engine = engine or create_db_engine()

    existing_columns = table_columns(engine, ANSWERS)
    if not existing_columns:
        logger.info(f"{ANSWERS} table not found, nothing to migrate")
        return False

    if "emojiid" in existing_columns:
        logger.info("EmojiID column already exists")
        return False

    logger.info(f"Adding EmojiID column to {ANSWERS} table...")
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {ANSWERS} ADD EmojiID INTEGER NULL"))
    logger.info("Added EmojiID column successfully")
    return True


if __name__ == "__main__":
    migrate_answers_add_emoji_id()
