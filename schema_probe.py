# schema_probe.py
"""
Detects which optional survey columns the connected database has.

Deployed databases were created by several versions of the kiosk, so
``Slug``, ``IsActive``, ``EmojiID``, ``PasswordChangedAt`` and the audit
timestamps may or may not exist. The probe runs once at startup and the
resulting ``SchemaFeatures`` is what every query consults.
"""

import logging
from dataclasses import dataclass, fields

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

logger = logging.getLogger(__name__)

USERS = "Users"
DEPARTMENTS = "Departments"
QUESTIONS = "SurveyQuestions"
ANSWERS = "SurveyAnswers"


@dataclass(frozen=True)
class SchemaFeatures:
    department_slug: bool = False
    department_is_active: bool = False
    department_created_at: bool = False
    department_updated_at: bool = False
    question_is_active: bool = False
    question_created_at: bool = False
    question_updated_at: bool = False
    answer_department_id: bool = False
    answer_emoji_id: bool = False
    answer_answered_at: bool = False
    answer_created_at: bool = False
    user_password_changed_at: bool = False
    user_created_at: bool = False

    def as_dict(self):
        return {f.name: getattr(self, f.name) for f in fields(self)}


def table_columns(engine: Engine, table_name: str) -> set:
    """Lower-cased column names of a table; empty when the table doesn't exist.
    Other database errors propagate."""
    try:
        columns = inspect(engine).get_columns(table_name)
    except NoSuchTableError:
        logger.warning(f"Table {table_name} not found")
        return set()
    return {c["name"].lower() for c in columns}


def column_exists(engine: Engine, table_name: str, column_name: str) -> bool:
    try:
        return column_name.lower() in table_columns(engine, table_name)
    except SQLAlchemyError as e:
        logger.warning(f"Could not read columns of {table_name}: {e}")
        return False


def probe_schema(engine: Engine) -> SchemaFeatures:
    users = table_columns(engine, USERS)
    departments = table_columns(engine, DEPARTMENTS)
    questions = table_columns(engine, QUESTIONS)
    answers = table_columns(engine, ANSWERS)

    features = SchemaFeatures(
        department_slug="slug" in departments,
        department_is_active="isactive" in departments,
        department_created_at="createdat" in departments,
        department_updated_at="updatedat" in departments,
        question_is_active="isactive" in questions,
        question_created_at="createdat" in questions,
        question_updated_at="updatedat" in questions,
        answer_department_id="departmentid" in answers,
        answer_emoji_id="emojiid" in answers,
        answer_answered_at="answeredat" in answers,
        answer_created_at="createdat" in answers,
        user_password_changed_at="passwordchangedat" in users,
        user_created_at="createdat" in users,
    )
    logger.info(f"Schema features: {features.as_dict()}")
    return features


def describe_schema(engine: Engine) -> dict:
    """Table name -> column descriptions, in the shape of INFORMATION_SCHEMA.COLUMNS."""
    insp = inspect(engine)
    schema = {}
    for table_name in sorted(insp.get_table_names()):
        schema[table_name] = [
            {
                "COLUMN_NAME": c["name"],
                "DATA_TYPE": str(c["type"]),
                "IS_NULLABLE": "YES" if c.get("nullable", True) else "NO",
            }
            for c in insp.get_columns(table_name)
        ]
    return schema
