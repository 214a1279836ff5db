import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass

from buildscope.errors import AppError, UpstreamError
from buildscope.models.chat import ChatRequest, ChatTurn
from buildscope.services.chat import ChatService
from buildscope.services.turn_persister import TurnPersister

logger = logging.getLogger(__name__)

# Relay tasks outlive the response when a client disconnects; hold references
# so they run to completion.
_running: set[asyncio.Task] = set()


@dataclass
class RelayResult:
    content: str
    complete: bool
    turn: ChatTurn | None = None
    error: str | None = None

    @property
    def persisted(self) -> bool:
        return self.turn is not None


@dataclass
class _Event:
    kind: str  # "token", "done" or "failed"
    token: str = ""
    result: RelayResult | None = None
    exc: BaseException | None = None


def _describe(exc: BaseException) -> str:
    status = getattr(exc, "status_code", None)
    if status:
        return f"{type(exc).__name__} (status {status})"
    return type(exc).__name__


class StreamRelay:
    """Relay one chat turn from the LLM to the client and persist it.

    The upstream call runs in its own task, feeding a queue. ``start`` waits
    for the first token so an upstream failure is raised before any response
    is opened; ``events`` turns the queue into SSE payloads. Tokens are
    accumulated in the task, and the persisted reply is built from the same
    list the client receives.
    """

    def __init__(
        self,
        chat_service: ChatService,
        persister: TurnPersister,
        timeout: float | None = None,
    ):
        self.chat_service = chat_service
        self.persister = persister
        self.timeout = timeout
        self._queue: asyncio.Queue[_Event] = asyncio.Queue()
        self._first: _Event | None = None
        self._task: asyncio.Task | None = None

    async def start(self, project: dict, request: ChatRequest) -> None:
        self._task = asyncio.create_task(self._run(project, request))
        _running.add(self._task)
        self._task.add_done_callback(_running.discard)

        first = await self._queue.get()
        if first.kind == "failed":
            raise UpstreamError("Failed to get AI response") from first.exc
        self._first = first

    async def _run(self, project: dict, request: ChatRequest) -> RelayResult:
        project_id = project["id"]
        parts: list[str] = []
        failure: BaseException | None = None

        try:
            async with asyncio.timeout(self.timeout):
                async for token in self.chat_service.stream(
                    project.get("chat_history") or [],
                    request.type,
                    request.message,
                    request.attachments,
                ):
                    parts.append(token)
                    await self._queue.put(_Event("token", token=token))
        except Exception as e:
            failure = e

        if not parts:
            # Nothing generated: fail the request, write nothing.
            if failure is None:
                logger.error("Upstream returned an empty reply for project %s", project_id)
            else:
                logger.error(
                    "Upstream call failed for project %s: %s", project_id, _describe(failure),
                    exc_info=failure,
                )
            await self._queue.put(_Event("failed", exc=failure))
            return RelayResult(content="", complete=False, error="No response received from AI")

        reply = "".join(parts)
        complete = failure is None
        if not complete:
            logger.error(
                "Upstream stream broke after %d chars for project %s: %s",
                len(reply), project_id, _describe(failure),
                exc_info=failure,
            )

        result = RelayResult(content=reply, complete=complete)
        if not complete:
            result.error = "AI response was interrupted"

        try:
            result.turn = await self.persister.acommit(
                project_id,
                request.type,
                request.message,
                request.attachments,
                reply,
                complete=complete,
            )
        except AppError as e:
            logger.error("Chat turn for project %s not persisted: %s", project_id, e.detail)
            result.error = result.error or e.detail

        await self._queue.put(_Event("done", result=result))
        return result

    async def events(self) -> AsyncGenerator[dict, None]:
        """SSE payloads: one per token, then a final done or error frame."""
        event = self._first
        self._first = None
        while True:
            if event is None:
                event = await self._queue.get()
            if event.kind == "token":
                yield {"data": json.dumps({"token": event.token})}
            elif event.kind == "done":
                yield {"data": json.dumps(self._final_frame(event.result))}
                return
            event = None

    async def result(self) -> RelayResult:
        """Wait for the relay to finish without consuming the token stream."""
        return await self._task

    @staticmethod
    def _final_frame(result: RelayResult) -> dict:
        if result.complete and result.persisted:
            return {
                "done": True,
                "persisted": True,
                "message_id": result.turn.id,
                "incomplete": False,
            }
        return {
            "error": result.error or "Failed to process message",
            "incomplete": not result.complete,
            "persisted": result.persisted,
        }
