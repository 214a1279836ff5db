from datetime import datetime

from pydantic import BaseModel, Field


class ImpactDetail(BaseModel):
    affected: bool = False
    details: str = ""


class Impact(BaseModel):
    schedule: ImpactDetail = Field(default_factory=ImpactDetail)
    cost: ImpactDetail = Field(default_factory=ImpactDetail)
    quality: ImpactDetail = Field(default_factory=ImpactDetail)
    safety: ImpactDetail = Field(default_factory=ImpactDetail)


class LessonInput(BaseModel):
    title: str = Field(..., min_length=1)
    problem: str = ""
    impact: Impact = Field(default_factory=Impact)
    root_cause: str = ""
    solution: str = ""


class LessonLearned(LessonInput):
    id: str
    created_at: datetime
