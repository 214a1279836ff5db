import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from buildscope.dependencies import get_current_user, get_project_store
from buildscope.errors import NotFoundError
from buildscope.models.lessons import LessonInput, LessonLearned
from buildscope.services.project_store import ProjectStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/api/projects/{project_id}/lessons", tags=["lessons"])


@router.get("", response_model=list[LessonLearned])
async def list_lessons(
    project_id: str,
    user_id: str = Depends(get_current_user),
    store: ProjectStore = Depends(get_project_store),
):
    project = store.get_owned_project(project_id, user_id)
    return project.get("lessons_learned") or []


@router.post("", response_model=LessonLearned, status_code=201)
async def add_lesson(
    project_id: str,
    request: LessonInput,
    user_id: str = Depends(get_current_user),
    store: ProjectStore = Depends(get_project_store),
):
    project = store.get_owned_project(project_id, user_id)
    lesson = LessonLearned(
        **request.model_dump(),
        id=str(uuid.uuid4()),
        created_at=datetime.now(timezone.utc),
    )
    lessons = list(project.get("lessons_learned") or [])
    lessons.append(lesson.model_dump(mode="json"))
    store.update_project(project_id, {"lessons_learned": lessons})
    logger.info("Added lesson %s to project %s", lesson.id, project_id)
    return lesson


@router.put("/{lesson_id}", response_model=LessonLearned)
async def edit_lesson(
    project_id: str,
    lesson_id: str,
    request: LessonInput,
    user_id: str = Depends(get_current_user),
    store: ProjectStore = Depends(get_project_store),
):
    project = store.get_owned_project(project_id, user_id)
    lessons = list(project.get("lessons_learned") or [])

    for i, existing in enumerate(lessons):
        if existing.get("id") == lesson_id:
            updated = LessonLearned(
                **request.model_dump(),
                id=lesson_id,
                created_at=existing["created_at"],
            )
            lessons[i] = updated.model_dump(mode="json")
            break
    else:
        raise NotFoundError("Lesson not found")

    store.update_project(project_id, {"lessons_learned": lessons})
    return updated


@router.delete("/{lesson_id}", status_code=204)
async def delete_lesson(
    project_id: str,
    lesson_id: str,
    user_id: str = Depends(get_current_user),
    store: ProjectStore = Depends(get_project_store),
):
    project = store.get_owned_project(project_id, user_id)
    lessons = project.get("lessons_learned") or []
    remaining = [lesson for lesson in lessons if lesson.get("id") != lesson_id]
    if len(remaining) == len(lessons):
        raise NotFoundError("Lesson not found")

    store.update_project(project_id, {"lessons_learned": remaining})
    logger.info("Deleted lesson %s from project %s", lesson_id, project_id)
