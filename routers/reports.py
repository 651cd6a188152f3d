# routers/reports.py
import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import get_db, get_features
from schema_probe import SchemaFeatures
from schemas import DepartmentReport, HistoryReport, EmojiStat
from services import report_aggregator, excel_export

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])
stats_router = APIRouter(tags=["reports"])


# PUBLIC: the dashboard reads reports without a token
@router.get("", response_model=List[DepartmentReport])
def get_reports(
    db: Session = Depends(get_db),
    features: SchemaFeatures = Depends(get_features),
):
    """Current active question of every department with its answer breakdown."""
    try:
        return report_aggregator.build_current_report(db, features)
    except SQLAlchemyError as e:
        logger.error(f"Error generating reports: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/history", response_model=List[HistoryReport])
def get_history(
    departmentId: Optional[int] = Query(None),
    startDate: Optional[date] = Query(None),
    endDate: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    features: SchemaFeatures = Depends(get_features),
):
    """Every question (newest first), filtered by department and question creation date."""
    try:
        return report_aggregator.build_history(db, features, departmentId, startDate, endDate)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching history data: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/export")
def export_reports(
    departmentId: Optional[int] = Query(None),
    startDate: Optional[date] = Query(None),
    endDate: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    features: SchemaFeatures = Depends(get_features),
):
    """Excel workbook with a per-question summary and the raw answers."""
    try:
        department_name = None
        if departmentId is not None:
            department_name = db.execute(
                text("SELECT Name FROM Departments WHERE DepartmentID = :id"), {"id": departmentId}
            ).scalar()
            if department_name is None:
                raise HTTPException(status_code=404, detail="Department not found")
        rows = excel_export.fetch_export_rows(db, features, departmentId, startDate, endDate)
    except SQLAlchemyError as e:
        logger.error(f"Error exporting to Excel: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    content = excel_export.build_report_workbook(rows, include_emoji_id=features.answer_emoji_id)
    filename = excel_export.export_filename(department_name)
    logger.info(f"Exported {len(rows)} rows to {filename}")
    return Response(
        content=content,
        media_type=excel_export.XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@stats_router.get("/emoji-stats", response_model=List[EmojiStat])
def get_emoji_stats(
    db: Session = Depends(get_db),
    features: SchemaFeatures = Depends(get_features),
):
    """Answer breakdown across all questions and departments."""
    try:
        return report_aggregator.build_emoji_stats(db, features)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching emoji statistics: {e}")
        raise HTTPException(status_code=500, detail=str(e))
