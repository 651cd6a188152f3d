# services/excel_export.py
import io
import re
from datetime import date, datetime, time

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from sqlalchemy import text
from sqlalchemy.orm import Session

from database import as_datetime
from schema_probe import SchemaFeatures
from services.emoji_scale import EMOJI_SCALE, emoji_for, empty_counts, label_for, resolve_emoji_id
from services.report_aggregator import end_of_day

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADER_FONT = Font(bold=True)
HEADER_FILL = PatternFill(fill_type="solid", fgColor="FFE6E6FA")

SUMMARY_COLUMNS = [
    ("Department", 25),
    ("Question", 50),
    ("Question Created", 20),
    ("Total Responses", 15),
] + [(f"{label} ({emoji})", 15) for emoji, label in EMOJI_SCALE.values()]

RAW_COLUMNS = [
    ("Department", 25),
    ("Question", 50),
    ("Question Created", 20),
    ("Answer Emoji", 15),
    ("Answer Label", 15),
    ("Answered At", 20),
]


def fetch_export_rows(db: Session, features: SchemaFeatures, department_id: int | None = None,
                      start_date: date | None = None, end_date: date | None = None):
    """One row per answer (or per unanswered question), joined with its question and department."""
    created = "q.CreatedAt" if features.question_created_at else "NULL"
    answered = "a.AnsweredAt" if features.answer_answered_at else (
        "a.CreatedAt" if features.answer_created_at else "NULL"
    )
    query = (
        f"SELECT d.Name AS department, q.QuestionText AS question, q.QuestionID, "
        f"{created} AS CreatedAt, a.AnswerID, a.AnswerEmoji, {answered} AS AnsweredAt"
    )
    if features.answer_emoji_id:
        query += ", a.EmojiID"
    query += (
        " FROM Departments d"
        " JOIN SurveyQuestions q ON d.DepartmentID = q.DepartmentID"
        " LEFT JOIN SurveyAnswers a ON q.QuestionID = a.QuestionID"
        " WHERE q.QuestionText IS NOT NULL"
    )
    params = {}
    if department_id is not None:
        query += " AND d.DepartmentID = :department_id"
        params["department_id"] = department_id
    if features.question_created_at:
        if start_date:
            query += " AND q.CreatedAt >= :start_date"
            params["start_date"] = datetime.combine(start_date, time.min)
        if end_date:
            query += " AND q.CreatedAt <= :end_date"
            params["end_date"] = end_of_day(end_date)

    order = ["d.Name"]
    if features.question_created_at:
        order.append("q.CreatedAt DESC")
    order.append("q.QuestionID DESC")
    if answered != "NULL":
        order.append(f"{answered} DESC")
    query += " ORDER BY " + ", ".join(order)

    return db.execute(text(query), params).mappings().all()


def _format_date(value) -> str:
    value = as_datetime(value)
    return value.strftime("%Y-%m-%d") if value else ""


def _format_timestamp(value) -> str:
    value = as_datetime(value)
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else ""


def _style_sheet(ws, columns):
    for index, (header, width) in enumerate(columns, start=1):
        cell = ws.cell(row=1, column=index)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        ws.column_dimensions[cell.column_letter].width = width


def build_report_workbook(rows, include_emoji_id: bool) -> bytes:
    wb = Workbook()

    # Summary sheet: one row per question
    summary = wb.active
    summary.title = "Summary"
    summary.append([header for header, _ in SUMMARY_COLUMNS])

    groups = {}
    for row in rows:
        group = groups.setdefault(row["QuestionID"], {
            "department": row["department"],
            "question": row["question"],
            "createdAt": row["CreatedAt"],
            "counts": empty_counts(),
            "total": 0,
        })
        if row["AnswerID"] is None:
            continue
        group["total"] += 1
        emoji_id = resolve_emoji_id(row.get("EmojiID"), row["AnswerEmoji"])
        if emoji_id is not None:
            group["counts"][emoji_id] += 1

    for group in groups.values():
        summary.append(
            [group["department"], group["question"], _format_date(group["createdAt"]), group["total"]]
            + [group["counts"][emoji_id] for emoji_id in EMOJI_SCALE]
        )

    # Raw data sheet: one row per answer
    raw = wb.create_sheet("Raw Data")
    raw_columns = RAW_COLUMNS + ([("Emoji ID", 10)] if include_emoji_id else [])
    raw.append([header for header, _ in raw_columns])

    for row in rows:
        if row["AnswerID"] is None:
            continue
        emoji_id = resolve_emoji_id(row.get("EmojiID"), row["AnswerEmoji"])
        values = [
            row["department"],
            row["question"],
            _format_date(row["CreatedAt"]),
            row["AnswerEmoji"] or emoji_for(emoji_id) or "",
            label_for(emoji_id),
            _format_timestamp(row["AnsweredAt"]),
        ]
        if include_emoji_id:
            values.append(emoji_id)
        raw.append(values)

    _style_sheet(summary, SUMMARY_COLUMNS)
    _style_sheet(raw, raw_columns)

    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()


def export_filename(department_name: str | None = None, today: date | None = None) -> str:
    today = today or date.today()
    label = re.sub(r"[^A-Za-z0-9_-]+", "_", (department_name or "").strip()).strip("_") or "All"
    return f"Survey_Report_{label}_{today.isoformat()}.xlsx"
