import logging
from typing import List

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.core.cache import cache_manager
from app.core.dependencies import require_admin
from app.db.session import get_db
from app.schemas.my_base_model import CustomBaseModel
from app.schemas.user import CurrentUser

logger = logging.getLogger(__name__)

router = APIRouter()
group_tags: List[str] = ["Health"]


class HealthCheck(CustomBaseModel):
    status: str = "oke"


class DetailedHealthCheck(CustomBaseModel):
    status: str = "healthy"
    database: str = "healthy"
    cache: str = "memory"


@router.get("/health", tags=group_tags, response_model=HealthCheck)
def get_health() -> HealthCheck:
    return HealthCheck(status="oke")


@router.get("/health/detailed", tags=group_tags, response_model=DetailedHealthCheck)
def get_detailed_health(
    db: Session = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
):
    """Database and cache status, admin only. 503 when the database is down."""
    try:
        db.execute(text("SELECT 1"))
        database = "healthy"
    except Exception:
        logger.exception("Database health check failed")
        database = "unhealthy"

    report = DetailedHealthCheck(
        status="healthy" if database == "healthy" else "unhealthy",
        database=database,
        cache=cache_manager.ping(),
    )
    if report.status != "healthy":
        return JSONResponse(status_code=503, content=report.model_dump())
    return report
