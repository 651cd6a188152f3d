# routers/questions.py
import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import get_db, get_features
from schema_probe import SchemaFeatures
from schemas import AnswerPayload, AnswerSubmitted
from services import survey_repository as repo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/questions", tags=["questions"])


@router.get("")
def list_questions(
    db: Session = Depends(get_db),
    features: SchemaFeatures = Depends(get_features),
):
    try:
        return repo.list_all_questions(db, features)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching questions: {e}")
        raise HTTPException(status_code=500, detail=str(e))


# PUBLIC: answers are anonymous
@router.post("/{question_id}/answers", response_model=AnswerSubmitted)
def submit_answer(
    question_id: int,
    payload: AnswerPayload,
    db: Session = Depends(get_db),
    features: SchemaFeatures = Depends(get_features),
):
    try:
        department_id = repo.submit_answer(db, features, question_id, payload.emoji, payload.emojiId)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error submitting answer: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"success": True, "departmentId": department_id}
