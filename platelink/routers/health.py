# platelink/routers/health.py
"""
System health check endpoint.
Returns status of backend + storage.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text

from platelink.services.backend import Backend, get_backend
from platelink.utils.ids import utcnow

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(backend: Backend = Depends(get_backend)):
    result = {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "backend": "ok",
        "storage": backend.kind,
        "database": "n/a",
    }

    if backend.kind == "sql":
        from platelink.database import SessionLocal
        try:
            with SessionLocal() as db:
                db.execute(text("SELECT 1"))
            result["database"] = "ok"
        except Exception as e:
            result["database"] = f"error: {str(e)}"
            result["status"] = "degraded"

    return result
