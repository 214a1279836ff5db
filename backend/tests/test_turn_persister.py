"""Tests for atomic turn persistence and the relay's lifecycle."""

import asyncio

import pytest

from buildscope.errors import NotFoundError, PersistenceError
from buildscope.models.chat import ChatRequest, ConversationType
from buildscope.services.chat import ChatService
from buildscope.services.project_store import ProjectStore
from buildscope.services.stream_relay import StreamRelay
from buildscope.services.turn_persister import TurnPersister
from tests.conftest import TEST_USER_ID
from tests.fakes import FakeChatModel, FakeSupabase, make_turn, seed_project

PROMPTS = {"scope": "S", "proposal": "P"}


@pytest.fixture
def supabase():
    db = FakeSupabase()
    seed_project(db, "P1", TEST_USER_ID)
    return db


@pytest.fixture
def persister(supabase):
    return TurnPersister(ProjectStore(supabase, conflict_retries=3))


def _project(db):
    return db.tables["projects"][0]


def test_commit_appends_pair_and_scope_in_one_update(persister, supabase):
    turn = persister.commit("P1", ConversationType.SCOPE, "Draft it", [], "The scope")

    (write,) = supabase.writes_to("projects")
    _, op, payload = write
    assert op == "update"
    assert [t["role"] for t in payload["chat_history"]] == ["user", "assistant"]
    assert payload["scope"]["content"] == "The scope"
    assert _project(supabase)["chat_history"][1]["id"] == turn.id


def test_scope_keeps_identity_across_turns(persister, supabase):
    persister.commit("P1", ConversationType.SCOPE, "v1", [], "first")
    first = dict(_project(supabase)["scope"])

    persister.commit("P1", ConversationType.SCOPE, "v2", [], "second")
    second = _project(supabase)["scope"]

    assert second["id"] == first["id"]
    assert second["content"] == "second"
    assert second["status"] == "draft"
    assert len(_project(supabase)["chat_history"]) == 4


def test_incomplete_reply_leaves_derived_document(persister, supabase):
    persister.commit("P1", ConversationType.SCOPE, "Draft", [], "partial", complete=False)

    project = _project(supabase)
    assert project["scope"] is None
    assert project["chat_history"][1]["incomplete"] is True


def test_concurrent_writer_is_retried_without_losing_turns(persister, supabase):
    other = make_turn("user", "from another request", "scope")

    def concurrent_write(db):
        row = db.tables["projects"][0]
        row["chat_history"] = row["chat_history"] + [other]
        row["updated_at"] = "2099-01-01T00:00:00+00:00"

    supabase.before_update = concurrent_write

    persister.commit("P1", ConversationType.SCOPE, "mine", [], "reply")

    contents = [t["content"] for t in _project(supabase)["chat_history"]]
    assert contents == ["from another request", "mine", "reply"]
    assert len(supabase.writes_to("projects")) == 2


def test_database_failure_raises_persistence_error(persister, supabase):
    supabase.update_errors.append(RuntimeError("connection lost"))

    with pytest.raises(PersistenceError):
        persister.commit("P1", ConversationType.SCOPE, "Draft", [], "reply")

    assert _project(supabase)["chat_history"] == []


def test_missing_project_raises_not_found(supabase):
    persister = TurnPersister(ProjectStore(FakeSupabase()))
    with pytest.raises(NotFoundError):
        persister.commit("nope", ConversationType.SCOPE, "Draft", [], "reply")


@pytest.mark.asyncio
async def test_relay_persists_when_client_never_reads(supabase, persister):
    llm = FakeChatModel(tokens=["kept ", "anyway"])
    relay = StreamRelay(ChatService(llm, PROMPTS), persister)
    request = ChatRequest(message="Draft", project_id="P1", type="scope")

    await relay.start(_project(supabase), request)
    # The response generator is dropped, as on a client disconnect.
    result = await relay.result()

    assert result.complete and result.persisted
    assert _project(supabase)["scope"]["content"] == "kept anyway"


@pytest.mark.asyncio
async def test_relay_timeout_counts_as_interrupted(supabase, persister):
    class SlowModel(FakeChatModel):
        async def astream(self, messages):
            from langchain_core.messages import AIMessageChunk

            yield AIMessageChunk(content="started")
            await asyncio.sleep(5)
            yield AIMessageChunk(content="late")

    relay = StreamRelay(ChatService(SlowModel(), PROMPTS), persister, timeout=0.05)
    request = ChatRequest(message="Draft", project_id="P1", type="scope")

    await relay.start(_project(supabase), request)
    result = await relay.result()

    assert result.complete is False
    assert result.content == "started"
    assert _project(supabase)["chat_history"][-1]["incomplete"] is True
