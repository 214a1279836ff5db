from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from buildscope.models.chat import ChatTurn
from buildscope.models.lessons import LessonLearned


class ScopeStatus(str, Enum):
    DRAFT = "draft"
    FINAL = "final"


class ProposalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Scope(BaseModel):
    id: str
    content: str
    status: ScopeStatus = ScopeStatus.DRAFT
    created_at: datetime
    updated_at: datetime


class Proposal(BaseModel):
    id: str
    content: str = ""
    status: ProposalStatus = ProposalStatus.PENDING
    feedback: str | None = None
    attachment_url: str | None = None
    created_at: datetime
    updated_at: datetime


class ProjectCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""


class Project(BaseModel):
    id: str
    user_id: str
    name: str
    description: str = ""
    status: str = "active"
    created_at: datetime
    updated_at: datetime
    chat_history: list[ChatTurn] = []
    scope: Scope | None = None
    proposal: Proposal | None = None
    lessons_learned: list[LessonLearned] = []


class ProjectSummary(BaseModel):
    id: str
    name: str
    description: str = ""
    status: str = "active"
    created_at: datetime
    updated_at: datetime
