import logging

from fastapi import APIRouter, Depends

from buildscope.dependencies import get_optional_project_store, get_optional_user
from buildscope.models.error_reports import ErrorReportRequest
from buildscope.services.project_store import ProjectStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/api/error-report", tags=["error-report"])


@router.post("")
async def report_error(
    request: ErrorReportRequest,
    user_id: str | None = Depends(get_optional_user),
    store: ProjectStore | None = Depends(get_optional_project_store),
):
    """Record an error reported by the browser."""
    logger.error(
        "Client error (%s) for user %s: %s",
        request.type, user_id or "anonymous", request.message,
    )
    if store is not None:
        store.record_error_report({**request.model_dump(), "user_id": user_id})
    return {"success": True}
