"""LeadBoard — Store Diagnostics Routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from leadboard.config import settings
from leadboard.core.logging import get_logger
from leadboard.database import get_session, ping

logger = get_logger("api.system")

router = APIRouter(prefix="/db", tags=["System"])


@router.get("/connection-test")
async def connection_test(session: Session = Depends(get_session)):
    """Run ``SELECT 1`` against the store and report the outcome."""
    result = {"ok": False, "configured": settings.database_configured}
    if not result["configured"]:
        return {"postgres": result}
    try:
        result["ok"] = ping(session)
        if not result["ok"]:
            result["error"] = "Unexpected result from SELECT 1"
    except SQLAlchemyError as e:
        logger.error(f"Connection test failed: {e}")
        result["error"] = str(e)
    return {"postgres": result}
