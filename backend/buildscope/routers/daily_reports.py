import logging

from fastapi import APIRouter, Depends

from buildscope.dependencies import get_current_user, get_project_store
from buildscope.models.daily_reports import DailyReport, DailyReportInput
from buildscope.services.project_store import ProjectStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/api/projects/{project_id}/daily-reports", tags=["daily-reports"])


@router.get("", response_model=list[DailyReport])
async def list_daily_reports(
    project_id: str,
    user_id: str = Depends(get_current_user),
    store: ProjectStore = Depends(get_project_store),
):
    store.get_owned_project(project_id, user_id)
    return store.list_daily_reports(project_id)


@router.post("", response_model=DailyReport, status_code=201)
async def create_daily_report(
    project_id: str,
    request: DailyReportInput,
    user_id: str = Depends(get_current_user),
    store: ProjectStore = Depends(get_project_store),
):
    store.get_owned_project(project_id, user_id)
    report = store.create_daily_report(project_id, request.model_dump(mode="json"))
    logger.info("Created daily report %s for project %s", report["id"], project_id)
    return report


@router.get("/{report_id}", response_model=DailyReport)
async def get_daily_report(
    project_id: str,
    report_id: str,
    user_id: str = Depends(get_current_user),
    store: ProjectStore = Depends(get_project_store),
):
    store.get_owned_project(project_id, user_id)
    return store.get_daily_report(project_id, report_id)


@router.put("/{report_id}", response_model=DailyReport)
async def update_daily_report(
    project_id: str,
    report_id: str,
    request: DailyReportInput,
    user_id: str = Depends(get_current_user),
    store: ProjectStore = Depends(get_project_store),
):
    store.get_owned_project(project_id, user_id)
    return store.update_daily_report(project_id, report_id, request.model_dump(mode="json"))


@router.delete("/{report_id}", status_code=204)
async def delete_daily_report(
    project_id: str,
    report_id: str,
    user_id: str = Depends(get_current_user),
    store: ProjectStore = Depends(get_project_store),
):
    store.get_owned_project(project_id, user_id)
    store.delete_daily_report(project_id, report_id)
    logger.info("Deleted daily report %s from project %s", report_id, project_id)
