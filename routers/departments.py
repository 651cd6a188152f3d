# routers/departments.py
import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import get_db, get_features
from schema_probe import SchemaFeatures
from schemas import DepartmentPayload, DepartmentCreated, DepartmentInfo, QuestionPayload, ActiveQuestion
from services import survey_repository as repo
from .auth import require_level, SUPER_ADMIN

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/departments", tags=["departments"])


def _database_error(db: Session, action: str, exc: SQLAlchemyError):
    db.rollback()
    logger.error(f"Error {action}: {exc}")
    return HTTPException(status_code=500, detail=str(exc))


# PUBLIC: kiosk and dashboard dropdown
@router.get("")
def list_departments(db: Session = Depends(get_db), features: SchemaFeatures = Depends(get_features)):
    try:
        return repo.list_departments(db, features)
    except SQLAlchemyError as e:
        raise _database_error(db, "fetching departments", e)

# SUPER-ADMIN: add a department
@router.post("", response_model=DepartmentCreated)
def create_department(
    payload: DepartmentPayload,
    db: Session = Depends(get_db),
    features: SchemaFeatures = Depends(get_features),
    user: dict = Depends(require_level(SUPER_ADMIN)),
):
    try:
        url_slug = repo.create_department(db, features, payload.name)
    except SQLAlchemyError as e:
        raise _database_error(db, "adding department", e)
    return {"success": True, "urlSlug": url_slug}

# SUPER-ADMIN: rename; the slug never changes
@router.put("/{department_id}")
def update_department(
    department_id: int,
    payload: DepartmentPayload,
    db: Session = Depends(get_db),
    features: SchemaFeatures = Depends(get_features),
    user: dict = Depends(require_level(SUPER_ADMIN)),
):
    try:
        repo.update_department(db, features, department_id, payload.name)
    except SQLAlchemyError as e:
        raise _database_error(db, "updating department", e)
    return {"success": True}

# SUPER-ADMIN: archive (soft delete) or delete
@router.delete("/{department_id}")
def delete_department(
    department_id: int,
    db: Session = Depends(get_db),
    features: SchemaFeatures = Depends(get_features),
    user: dict = Depends(require_level(SUPER_ADMIN)),
):
    try:
        repo.delete_department(db, features, department_id)
    except SQLAlchemyError as e:
        raise _database_error(db, "deleting department", e)
    return {"success": True}

@router.get("/slug/{slug}", response_model=DepartmentInfo)
def get_department_by_slug(slug: str, db: Session = Depends(get_db), features: SchemaFeatures = Depends(get_features)):
    try:
        return repo.get_department_by_slug(db, features, slug)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error fetching department by slug: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch department information")

@router.get("/by-id/{department_id}/questions")
def list_questions_by_department_id(
    department_id: int,
    db: Session = Depends(get_db),
    features: SchemaFeatures = Depends(get_features),
):
    try:
        return repo.list_questions_for_department_id(db, features, department_id)
    except SQLAlchemyError as e:
        raise _database_error(db, "fetching department questions", e)

@router.get("/{slug}/questions")
def list_questions_by_slug(
    slug: str,
    db: Session = Depends(get_db),
    features: SchemaFeatures = Depends(get_features),
):
    try:
        return repo.list_questions_for_slug(db, features, slug)
    except SQLAlchemyError as e:
        raise _database_error(db, "fetching questions for department", e)

@router.post("/{slug}/questions")
def create_question(
    slug: str,
    payload: QuestionPayload,
    db: Session = Depends(get_db),
    features: SchemaFeatures = Depends(get_features),
):
    try:
        repo.create_question(db, features, slug, payload.questionText)
    except SQLAlchemyError as e:
        raise _database_error(db, "adding question", e)
    logger.info(f"New active question for department {slug}")
    return {"success": True}

# PUBLIC: what the kiosk shows
@router.get("/{slug}/active-question", response_model=ActiveQuestion)
def get_active_question(slug: str, db: Session = Depends(get_db), features: SchemaFeatures = Depends(get_features)):
    try:
        return repo.get_active_question(db, features, slug)
    except SQLAlchemyError as e:
        raise _database_error(db, "fetching active question", e)
