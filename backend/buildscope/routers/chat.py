import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends
from langchain_core.language_models.chat_models import BaseChatModel
from sse_starlette.sse import EventSourceResponse

from buildscope.config import Settings
from buildscope.dependencies import get_current_user, get_llm_factory, get_project_store, get_settings
from buildscope.errors import PersistenceError, UpstreamError
from buildscope.models.chat import ChatCompleteResponse, ChatRequest
from buildscope.services.chat import ChatService
from buildscope.services.project_store import ProjectStore
from buildscope.services.stream_relay import StreamRelay
from buildscope.services.turn_persister import TurnPersister

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/api/chat", tags=["chat"])


async def _start_relay(
    request: ChatRequest,
    user_id: str,
    settings: Settings,
    store: ProjectStore,
    llm_factory: Callable[[Settings], BaseChatModel],
) -> StreamRelay:
    # Credential first, then project lookup; both before any upstream call.
    llm = llm_factory(settings)
    project = store.get_owned_project(request.project_id, user_id)

    logger.info(
        "Chat turn for project %s (type=%s, %d attachment(s))",
        request.project_id, request.type.value, len(request.attachments),
    )
    relay = StreamRelay(
        ChatService.from_settings(settings, llm),
        TurnPersister(store),
        timeout=settings.chat_stream_timeout,
    )
    await relay.start(project, request)
    return relay


@router.post("")
async def chat(
    request: ChatRequest,
    user_id: str = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    store: ProjectStore = Depends(get_project_store),
    llm_factory: Callable[[Settings], BaseChatModel] = Depends(get_llm_factory),
):
    relay = await _start_relay(request, user_id, settings, store, llm_factory)
    return EventSourceResponse(relay.events())


@router.post("/complete", response_model=ChatCompleteResponse)
async def chat_complete(
    request: ChatRequest,
    user_id: str = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    store: ProjectStore = Depends(get_project_store),
    llm_factory: Callable[[Settings], BaseChatModel] = Depends(get_llm_factory),
):
    """Non-streaming variant: run the same relay and return the assistant turn."""
    relay = await _start_relay(request, user_id, settings, store, llm_factory)
    result = await relay.result()

    if not result.complete:
        raise UpstreamError("Failed to get AI response")
    if not result.persisted:
        raise PersistenceError(result.error or "Failed to save chat messages")

    return ChatCompleteResponse(message=result.turn)
