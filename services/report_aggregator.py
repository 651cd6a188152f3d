# services/report_aggregator.py
import logging
from datetime import date, datetime, time

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import as_datetime
from schema_probe import SchemaFeatures
from services.emoji_scale import EMOJI_SCALE, empty_counts, percentage, resolve_emoji_id

logger = logging.getLogger(__name__)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time(23, 59, 59))


def count_buckets(db: Session, features: SchemaFeatures, question_id: int | None = None):
    """
    Answer counts per scale bucket, plus the raw total of answers.

    Rows carrying only an emoji character (older schema or older kiosk)
    are mapped onto the scale; rows that map to nothing still count
    towards the total.
    """
    columns = "EmojiID, AnswerEmoji" if features.answer_emoji_id else "AnswerEmoji"
    query = f"SELECT {columns}, COUNT(*) AS Count FROM SurveyAnswers"
    params = {}
    if question_id is not None:
        query += " WHERE QuestionID = :question_id"
        params["question_id"] = question_id
    query += f" GROUP BY {columns}"

    counts = empty_counts()
    total = 0
    for row in db.execute(text(query), params).mappings():
        total += row["Count"]
        emoji_id = resolve_emoji_id(row.get("EmojiID"), row["AnswerEmoji"])
        if emoji_id is not None:
            counts[emoji_id] += row["Count"]
    return counts, total


def _scale_rows(counts: dict, total: int, count_key: str = "Count") -> list[dict]:
    return [
        {
            "EmojiID": emoji_id,
            "AnswerEmoji": emoji,
            "Label": label,
            count_key: counts[emoji_id],
            "Percentage": percentage(counts[emoji_id], total),
        }
        for emoji_id, (emoji, label) in EMOJI_SCALE.items()
    ]


def _latest_active_question(db: Session, features: SchemaFeatures, department_id: int):
    query = "SELECT QuestionID, QuestionText FROM SurveyQuestions WHERE DepartmentID = :id"
    params = {"id": department_id}
    if features.question_is_active:
        query += " AND IsActive = :active"
        params["active"] = True
    if features.question_created_at:
        query += " ORDER BY CreatedAt DESC, QuestionID DESC"
    else:
        query += " ORDER BY QuestionID DESC"
    return db.execute(text(query), params).mappings().first()


def build_current_report(db: Session, features: SchemaFeatures) -> list[dict]:
    """One entry per department that has an active question."""
    departments = db.execute(
        text("SELECT DepartmentID, Name FROM Departments ORDER BY Name")
    ).mappings().all()

    reports = []
    for dept in departments:
        try:
            question = _latest_active_question(db, features, dept["DepartmentID"])
            if question is None:
                continue
            counts, total = count_buckets(db, features, question["QuestionID"])
        except SQLAlchemyError as e:
            logger.error(f"Error getting report for department {dept['Name']}: {e}")
            db.rollback()
            continue

        reports.append({
            "department": dept["Name"],
            "departmentId": dept["DepartmentID"],
            "question": question["QuestionText"],
            "questionId": question["QuestionID"],
            "totalResponses": total,
            "responses": _scale_rows(counts, total),
        })
    return reports


def history_questions(db: Session, features: SchemaFeatures, department_id: int | None = None,
                      start_date: date | None = None, end_date: date | None = None):
    created = "q.CreatedAt" if features.question_created_at else "NULL"
    query = (
        f"SELECT d.Name AS department, q.QuestionText AS question, q.QuestionID, "
        f"d.DepartmentID, {created} AS CreatedAt "
        "FROM SurveyQuestions q JOIN Departments d ON q.DepartmentID = d.DepartmentID "
        "WHERE q.QuestionText IS NOT NULL"
    )
    params = {}
    if department_id is not None:
        query += " AND d.DepartmentID = :department_id"
        params["department_id"] = department_id

    if start_date or end_date:
        if not features.question_created_at:
            logger.warning("SurveyQuestions.CreatedAt missing, ignoring history date filters")
        else:
            if start_date:
                query += " AND q.CreatedAt >= :start_date"
                params["start_date"] = datetime.combine(start_date, time.min)
            if end_date:
                query += " AND q.CreatedAt <= :end_date"
                params["end_date"] = end_of_day(end_date)

    if features.question_created_at:
        query += " ORDER BY q.CreatedAt DESC, q.QuestionID DESC"
    else:
        query += " ORDER BY q.QuestionID DESC"
    return db.execute(text(query), params).mappings().all()


def build_history(db: Session, features: SchemaFeatures, department_id: int | None = None,
                  start_date: date | None = None, end_date: date | None = None) -> list[dict]:
    reports = []
    for row in history_questions(db, features, department_id, start_date, end_date):
        counts, total = count_buckets(db, features, row["QuestionID"])
        reports.append({
            "department": row["department"],
            "question": row["question"],
            "questionId": row["QuestionID"],
            "departmentId": row["DepartmentID"],
            "createdAt": as_datetime(row["CreatedAt"]),
            "totalResponses": total,
            "emojiData": [
                {
                    "emoji": emoji,
                    "label": label,
                    "count": counts[emoji_id],
                    "percentage": percentage(counts[emoji_id], total),
                    "id": emoji_id,
                }
                for emoji_id, (emoji, label) in EMOJI_SCALE.items()
            ],
        })
    return reports


def build_emoji_stats(db: Session, features: SchemaFeatures) -> list[dict]:
    counts, total = count_buckets(db, features)
    return _scale_rows(counts, total, count_key="TotalCount")
