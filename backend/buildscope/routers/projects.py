import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Response

from buildscope.dependencies import get_current_user, get_project_store
from buildscope.errors import NotFoundError
from buildscope.models.chat import ChatHistoryResponse, ConversationType
from buildscope.models.projects import Project, ProjectCreateRequest, ProjectSummary
from buildscope.services.chat import filter_history
from buildscope.services.documents import DOCX_TYPE, build_scope_docx
from buildscope.services.project_store import ProjectStore
from buildscope.utils.text import sanitize_filename

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/api/projects", tags=["projects"])


@router.post("", response_model=Project, status_code=201)
async def create_project(
    request: ProjectCreateRequest,
    user_id: str = Depends(get_current_user),
    store: ProjectStore = Depends(get_project_store),
):
    project = store.create_project(user_id, request.name, request.description)
    logger.info("Created project %s for user %s", project["id"], user_id)
    return project


@router.get("", response_model=list[ProjectSummary])
async def list_projects(
    user_id: str = Depends(get_current_user),
    store: ProjectStore = Depends(get_project_store),
):
    return store.list_projects(user_id)


@router.get("/{project_id}", response_model=Project)
async def get_project(
    project_id: str,
    user_id: str = Depends(get_current_user),
    store: ProjectStore = Depends(get_project_store),
):
    return store.get_owned_project(project_id, user_id)


@router.delete("/{project_id}", status_code=204)
async def delete_project(
    project_id: str,
    user_id: str = Depends(get_current_user),
    store: ProjectStore = Depends(get_project_store),
):
    store.get_owned_project(project_id, user_id)
    store.delete_project(project_id, user_id)
    logger.info("Deleted project %s", project_id)


@router.get("/{project_id}/chat", response_model=ChatHistoryResponse)
async def get_chat_history(
    project_id: str,
    type: ConversationType | None = None,
    user_id: str = Depends(get_current_user),
    store: ProjectStore = Depends(get_project_store),
):
    project = store.get_owned_project(project_id, user_id)
    history = project.get("chat_history") or []
    if type is not None:
        history = filter_history(history, type)
    return ChatHistoryResponse(project_id=project_id, type=type, messages=history)


@router.get("/{project_id}/scope/download")
async def download_scope(
    project_id: str,
    user_id: str = Depends(get_current_user),
    store: ProjectStore = Depends(get_project_store),
):
    project = store.get_owned_project(project_id, user_id)
    scope = project.get("scope")
    if not scope or not scope.get("content"):
        raise NotFoundError("No scope found for this project")

    content = build_scope_docx(
        project["name"],
        scope["content"],
        datetime.fromisoformat(scope["updated_at"]),
    )
    filename = f"{sanitize_filename(project['name'])}-Scope.docx"
    return Response(
        content=content,
        media_type=DOCX_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
