"""LeadBoard — Ingestion Route."""

import json

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from leadboard.api.deps import require_database, require_ingestion_key
from leadboard.core.logging import get_logger
from leadboard.database import get_session
from leadboard.ingest.normalizer import IngestValidationError, normalize_batch
from leadboard.ingest.writer import write_batch

logger = get_logger("api.ingest")

router = APIRouter(tags=["Ingestion"])


@router.post("/ingest", dependencies=[Depends(require_ingestion_key)])
async def ingest(request: Request, session: Session = Depends(get_session)):
    """Bulk-load metric snapshots, UTM rows and lead messages.

    Accepts one record, an array of records, or ``{"records": [...]}``.
    Nothing is written unless every record validates.
    """
    try:
        body = json.loads(await request.body())
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body.")

    try:
        records = normalize_batch(body)
    except IngestValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    require_database()
    try:
        result = write_batch(session, records, body)
    except (SQLAlchemyError, RuntimeError) as e:
        logger.error(f"Ingestion failed: {e}", extra={"endpoint": "/api/ingest"})
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "ok": True,
        "metrics_upserted": result.metrics_upserted,
        "utm_upserted": result.utm_upserted,
        "job_id": result.job_id,
    }
