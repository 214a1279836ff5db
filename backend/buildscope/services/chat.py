from collections.abc import AsyncGenerator, Iterable, Mapping

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from buildscope.config import Settings
from buildscope.errors import ConfigurationError
from buildscope.models.chat import Attachment, ConversationType


def build_chat_model(settings: Settings) -> BaseChatModel:
    """Create the streaming chat model for the configured provider."""
    api_key = settings.llm_api_key
    if not api_key:
        raise ConfigurationError("Chat service is not configured")

    if settings.chat_provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=settings.chat_model,
            max_tokens=settings.chat_max_tokens,
            temperature=settings.chat_temperature,
            openai_api_key=api_key,
            streaming=True,
            max_retries=0,
        )

    if settings.chat_provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(
            model=settings.chat_model,
            max_tokens=settings.chat_max_tokens,
            temperature=settings.chat_temperature,
            api_key=api_key,
            streaming=True,
            max_retries=0,
        )

    raise ConfigurationError(f"Unknown chat provider: {settings.chat_provider}")


def filter_history(history: Iterable[dict], conversation_type: ConversationType | str) -> list[dict]:
    """Return the turns of one conversation thread, in order."""
    wanted = ConversationType(conversation_type).value
    return [turn for turn in history if turn.get("type") == wanted]


def window_history(
    history: Iterable[dict],
    conversation_type: ConversationType | str,
    window: int = 10,
) -> list[dict]:
    """Last ``window`` turns of one thread. Never includes other thread types."""
    turns = filter_history(history, conversation_type)
    if window <= 0:
        return []
    return turns[-window:]


def _list_attachments(attachments: list[Attachment]) -> str:
    return "\n".join(f"- {a.name}: {a.url}" for a in attachments)


def build_user_content(message: str, attachments: list[Attachment] | None = None) -> str:
    """Compose the new user turn, inlining extracted attachment text."""
    if not attachments:
        return message

    parts = [message]
    with_content = [a for a in attachments if a.content]
    without_content = [a for a in attachments if not a.content]

    if with_content:
        parts.append(
            "\n\n".join(
                f"Document: {a.name}\nContent:\n{a.content}" for a in with_content
            )
        )
    if without_content:
        parts.append(
            "I've attached the following documents:\n" + _list_attachments(without_content)
        )
    return "\n\n".join(parts)


def _history_content(turn: dict) -> str:
    content = turn.get("content", "")
    attachments = [Attachment(**a) for a in turn.get("attachments") or []]
    if attachments:
        content += "\n\nAttached documents:\n" + _list_attachments(attachments)
    return content


def _chunk_text(content) -> str:
    """Text of a streamed chunk; providers emit either a string or content blocks."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        pieces = []
        for block in content:
            if isinstance(block, str):
                pieces.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                pieces.append(block.get("text", ""))
        return "".join(pieces)
    return ""


class ChatService:
    def __init__(
        self,
        llm: BaseChatModel,
        system_prompts: Mapping[str, str],
        history_window: int = 10,
    ):
        self.llm = llm
        self.system_prompts = system_prompts
        self.history_window = history_window

    @classmethod
    def from_settings(cls, settings: Settings, llm: BaseChatModel) -> "ChatService":
        return cls(
            llm,
            system_prompts=settings.system_prompts,
            history_window=settings.chat_history_window,
        )

    def system_prompt(self, conversation_type: ConversationType) -> str:
        return self.system_prompts[ConversationType(conversation_type).value]

    def build_messages(
        self,
        history: list[dict],
        conversation_type: ConversationType,
        message: str,
        attachments: list[Attachment] | None = None,
    ) -> list[BaseMessage]:
        """Build the message list for the LLM."""
        messages: list[BaseMessage] = [SystemMessage(content=self.system_prompt(conversation_type))]

        for turn in window_history(history, conversation_type, self.history_window):
            if turn.get("role") == "user":
                messages.append(HumanMessage(content=_history_content(turn)))
            elif turn.get("role") == "assistant":
                messages.append(AIMessage(content=_history_content(turn)))

        messages.append(HumanMessage(content=build_user_content(message, attachments)))
        return messages

    async def stream(
        self,
        history: list[dict],
        conversation_type: ConversationType,
        message: str,
        attachments: list[Attachment] | None = None,
    ) -> AsyncGenerator[str, None]:
        """Stream the assistant reply as non-empty text deltas."""
        messages = self.build_messages(history, conversation_type, message, attachments)
        async for chunk in self.llm.astream(messages):
            token = _chunk_text(chunk.content)
            if token:
                yield token
