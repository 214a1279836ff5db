import asyncio
import logging
import uuid
from datetime import datetime, timezone

from buildscope.errors import AppError, PersistenceError
from buildscope.models.chat import Attachment, ChatTurn, ConversationType, Role
from buildscope.services.project_store import ProjectStore

logger = logging.getLogger(__name__)


def derived_document_update(
    project: dict,
    conversation_type: ConversationType,
    content: str,
    now: str,
) -> dict:
    """Column values replacing the project's scope or proposal with ``content``."""
    if conversation_type == ConversationType.SCOPE:
        previous = project.get("scope") or {}
        return {
            "scope": {
                "id": previous.get("id") or str(uuid.uuid4()),
                "content": content,
                "status": "draft",
                "created_at": previous.get("created_at") or now,
                "updated_at": now,
            }
        }

    previous = project.get("proposal") or {
        "id": str(uuid.uuid4()),
        "status": "pending",
        "created_at": now,
    }
    return {"proposal": {**previous, "content": content, "updated_at": now}}


class TurnPersister:
    """Commit a user/assistant turn pair and its derived document in one write."""

    def __init__(self, store: ProjectStore):
        self.store = store

    def build_turns(
        self,
        conversation_type: ConversationType,
        message: str,
        attachments: list[Attachment],
        reply: str,
        complete: bool = True,
    ) -> tuple[ChatTurn, ChatTurn]:
        now = datetime.now(timezone.utc)
        user_turn = ChatTurn(
            id=str(uuid.uuid4()),
            role=Role.USER,
            content=message,
            type=conversation_type,
            attachments=attachments,
            timestamp=now,
        )
        assistant_turn = ChatTurn(
            id=str(uuid.uuid4()),
            role=Role.ASSISTANT,
            content=reply,
            type=conversation_type,
            timestamp=now,
            incomplete=not complete,
        )
        return user_turn, assistant_turn

    def commit(
        self,
        project_id: str,
        conversation_type: ConversationType,
        message: str,
        attachments: list[Attachment],
        reply: str,
        complete: bool = True,
    ) -> ChatTurn:
        """Persist the turn pair; returns the assistant turn.

        An incomplete reply is appended to history but never replaces the
        derived document.
        """
        user_turn, assistant_turn = self.build_turns(
            conversation_type, message, attachments, reply, complete
        )
        turns = [
            user_turn.model_dump(mode="json"),
            assistant_turn.model_dump(mode="json"),
        ]
        derive = None
        if complete:
            now = assistant_turn.timestamp.isoformat()
            derive = lambda project: derived_document_update(  # noqa: E731
                project, conversation_type, reply, now
            )

        try:
            self.store.append_turns(project_id, turns, derive=derive)
        except AppError:
            raise
        except Exception as e:
            logger.exception("Failed to persist chat turn for project %s", project_id)
            raise PersistenceError("Failed to save chat messages") from e

        logger.info(
            "Saved %s turn for project %s (%d chars%s)",
            conversation_type.value, project_id, len(reply),
            "" if complete else ", incomplete",
        )
        return assistant_turn

    async def acommit(self, *args, **kwargs) -> ChatTurn:
        return await asyncio.to_thread(self.commit, *args, **kwargs)
