# services/survey_repository.py
"""
Department, question and answer queries.

Every statement is assembled from the columns reported by
``SchemaFeatures`` so the same code runs against old and new databases.
Callers own error handling for database failures; the validation and
not-found cases raise ``HTTPException`` directly.
"""

import logging
from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from schema_probe import SchemaFeatures
from services.emoji_scale import EMOJI_SCALE, emoji_for, resolve_emoji_id
from services.slugs import generate_unique_slug

logger = logging.getLogger(__name__)

NAME_SLUG_SQL = "LOWER(REPLACE({prefix}Name, ' ', '-'))"


def _slug_column(features: SchemaFeatures, prefix: str = "") -> str:
    if features.department_slug:
        return f"{prefix}Slug"
    return NAME_SLUG_SQL.format(prefix=prefix)


def _with_bool(row, key="IsActive"):
    item = dict(row)
    if key in item and item[key] is not None:
        item[key] = bool(item[key])
    return item


def _insert(table: str, values: dict):
    columns = ", ".join(values)
    params = ", ".join(f":{c}" for c in values)
    return text(f"INSERT INTO {table} ({columns}) VALUES ({params})")


# --- Departments ---

def list_departments(db: Session, features: SchemaFeatures) -> list[dict]:
    query = f"SELECT DepartmentID, Name, {_slug_column(features)} AS URLSlug"
    params = {}
    if features.department_is_active:
        query += ", IsActive FROM Departments WHERE IsActive = :active"
        params["active"] = True
    else:
        query += " FROM Departments"
    query += " ORDER BY Name"

    rows = db.execute(text(query), params).mappings().all()
    return [_with_bool(r) for r in rows]


def find_department_id_by_slug(db: Session, features: SchemaFeatures, slug: str, active_only: bool = True):
    query = f"SELECT DepartmentID FROM Departments WHERE {_slug_column(features)} = :slug"
    params = {"slug": slug}
    if active_only and features.department_is_active:
        query += " AND IsActive = :active"
        params["active"] = True
    return db.execute(text(query), params).scalar()


def require_department_id_by_slug(db: Session, features: SchemaFeatures, slug: str) -> int:
    department_id = find_department_id_by_slug(db, features, slug)
    if department_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Department not found")
    return department_id


def get_department_by_slug(db: Session, features: SchemaFeatures, slug: str) -> dict:
    query = f"SELECT DepartmentID, Name, {_slug_column(features)} AS Slug"
    params = {"slug": slug}
    if features.department_is_active:
        query += ", IsActive"
    query += f" FROM Departments WHERE {_slug_column(features)} = :slug"
    if features.department_is_active:
        query += " AND IsActive = :active"
        params["active"] = True

    row = db.execute(text(query), params).mappings().first()
    if row is None:
        raise HTTPException(status_code=404, detail="Department not found or inactive")
    return {
        "id": row["DepartmentID"],
        "name": row["Name"],
        "slug": row["Slug"],
        "isActive": bool(row["IsActive"]) if features.department_is_active else True,
    }


def _clean_name(name) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise HTTPException(status_code=400, detail="Department name is required")
    return cleaned


def create_department(db: Session, features: SchemaFeatures, name: str) -> str:
    """Insert a department and return its URL slug."""
    clean_name = _clean_name(name)
    url_slug = generate_unique_slug(db, features)
    now = datetime.now()

    values = {"Name": clean_name}
    if features.department_slug:
        values["Slug"] = url_slug
    if features.department_is_active:
        values["IsActive"] = True
    if features.department_created_at:
        values["CreatedAt"] = now
    if features.department_updated_at:
        values["UpdatedAt"] = now

    db.execute(_insert("Departments", values), values)
    db.commit()
    logger.info(f"Created department {clean_name!r} with slug {url_slug}")
    return url_slug


def update_department(db: Session, features: SchemaFeatures, department_id: int, name: str):
    # The slug stays what it was at creation; only the name changes.
    clean_name = _clean_name(name)
    query = "UPDATE Departments SET Name = :name"
    params = {"name": clean_name, "id": department_id}
    if features.department_updated_at:
        query += ", UpdatedAt = :now"
        params["now"] = datetime.now()
    query += " WHERE DepartmentID = :id"

    result = db.execute(text(query), params)
    if result.rowcount == 0:
        db.rollback()
        raise HTTPException(status_code=404, detail="Department not found")
    db.commit()


def delete_department(db: Session, features: SchemaFeatures, department_id: int):
    question_count = db.execute(
        text("SELECT COUNT(*) FROM SurveyQuestions WHERE DepartmentID = :id"),
        {"id": department_id},
    ).scalar()
    if question_count:
        raise HTTPException(
            status_code=400,
            detail="Cannot delete department with existing questions. Delete questions first.",
        )

    if features.department_is_active:
        result = db.execute(
            text("UPDATE Departments SET IsActive = :inactive WHERE DepartmentID = :id"),
            {"inactive": False, "id": department_id},
        )
    else:
        result = db.execute(text("DELETE FROM Departments WHERE DepartmentID = :id"), {"id": department_id})

    if result.rowcount == 0:
        db.rollback()
        raise HTTPException(status_code=404, detail="Department not found")
    db.commit()


# --- Questions ---

def _question_select(features: SchemaFeatures, prefix: str = "") -> str:
    columns = [f"{prefix}QuestionID", f"{prefix}QuestionText", f"{prefix}DepartmentID"]
    if features.question_is_active:
        columns.append(f"{prefix}IsActive")
    if features.question_created_at:
        columns.append(f"{prefix}CreatedAt")
    return "SELECT " + ", ".join(columns)


def list_questions_for_department_id(db: Session, features: SchemaFeatures, department_id: int) -> list[dict]:
    query = _question_select(features) + " FROM SurveyQuestions WHERE DepartmentID = :id"
    if features.question_created_at:
        query += " ORDER BY CreatedAt DESC"
    rows = db.execute(text(query), {"id": department_id}).mappings().all()
    return [_with_bool(r) for r in rows]


def list_questions_for_slug(db: Session, features: SchemaFeatures, slug: str) -> list[dict]:
    department_id = require_department_id_by_slug(db, features, slug)
    return list_questions_for_department_id(db, features, department_id)


def list_all_questions(db: Session, features: SchemaFeatures) -> list[dict]:
    query = _question_select(features, "q.") + " FROM SurveyQuestions q"
    if features.question_created_at:
        query += " ORDER BY q.CreatedAt DESC"
    rows = db.execute(text(query)).mappings().all()
    return [_with_bool(r) for r in rows]


def create_question(db: Session, features: SchemaFeatures, slug: str, question_text: str) -> int:
    """Add a question to a department; it becomes the department's only active one."""
    clean_text = (question_text or "").strip()
    if not clean_text:
        raise HTTPException(status_code=400, detail="Question text is required")

    department_id = require_department_id_by_slug(db, features, slug)
    now = datetime.now()

    values = {"DepartmentID": department_id, "QuestionText": clean_text}
    if features.question_is_active:
        values["IsActive"] = True
    if features.question_created_at:
        values["CreatedAt"] = now
    if features.question_updated_at:
        values["UpdatedAt"] = now

    # Deactivate and insert commit together
    try:
        if features.question_is_active:
            db.execute(
                text("UPDATE SurveyQuestions SET IsActive = :inactive WHERE DepartmentID = :id"),
                {"inactive": False, "id": department_id},
            )
        db.execute(_insert("SurveyQuestions", values), values)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return department_id


def get_active_question(db: Session, features: SchemaFeatures, slug: str) -> dict:
    query = (
        "SELECT q.QuestionID, q.QuestionText FROM SurveyQuestions q "
        "JOIN Departments d ON q.DepartmentID = d.DepartmentID "
        f"WHERE {_slug_column(features, 'd.')} = :slug"
    )
    params = {"slug": slug}
    if features.question_is_active:
        query += " AND q.IsActive = :active"
        params["active"] = True
    if features.question_created_at:
        query += " ORDER BY q.CreatedAt DESC, q.QuestionID DESC"
    else:
        query += " ORDER BY q.QuestionID DESC"

    row = db.execute(text(query), params).mappings().first()
    if row is None:
        raise HTTPException(status_code=404, detail="No active question found")
    return dict(row)


# --- Answers ---

def submit_answer(db: Session, features: SchemaFeatures, question_id: int, emoji: str | None = None,
                  emoji_id: int | None = None) -> int:
    """Store an anonymous answer and return the department it belongs to."""
    emoji = (emoji or "").strip() or None
    if emoji is None and emoji_id is None:
        raise HTTPException(status_code=400, detail="Either emoji or emojiId is required")
    if emoji_id is not None and emoji_id not in EMOJI_SCALE:
        raise HTTPException(status_code=400, detail=f"emojiId must be between 1 and {len(EMOJI_SCALE)}")

    department_id = db.execute(
        text("SELECT DepartmentID FROM SurveyQuestions WHERE QuestionID = :id"), {"id": question_id}
    ).scalar()
    if department_id is None:
        raise HTTPException(status_code=404, detail="Question not found")

    if emoji_id is None:
        emoji_id = resolve_emoji_id(emoji=emoji)
    if emoji is None:
        emoji = emoji_for(emoji_id)

    now = datetime.now()
    values = {"QuestionID": question_id}
    if features.answer_department_id:
        values["DepartmentID"] = department_id
    if emoji:
        values["AnswerEmoji"] = emoji
    if features.answer_emoji_id and emoji_id is not None:
        values["EmojiID"] = emoji_id
    if features.answer_answered_at:
        values["AnsweredAt"] = now
    if features.answer_created_at:
        values["CreatedAt"] = now

    db.execute(_insert("SurveyAnswers", values), values)
    db.commit()
    return department_id
