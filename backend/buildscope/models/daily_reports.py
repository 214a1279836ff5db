from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class WeatherType(str, Enum):
    SUNNY = "Sunny"
    CLOUDY = "Cloudy"
    RAINY = "Rainy"
    STORMY = "Stormy"


class Weather(BaseModel):
    type: WeatherType
    description: str = ""


class ManpowerEntry(BaseModel):
    id: int
    trade: str
    count: int = Field(..., ge=0)


class WorkArea(BaseModel):
    id: int
    description: str


class Photo(BaseModel):
    id: int
    url: str


class DailyReportInput(BaseModel):
    date: datetime
    summary: str = ""
    client_comments: str = ""
    weather: Weather
    manpower: list[ManpowerEntry] = []
    work_areas: list[WorkArea] = []
    photos: list[Photo] = []
    notes: str = ""
    safety: str = ""


class DailyReport(DailyReportInput):
    id: str
    project_id: str
    created_at: datetime
    updated_at: datetime
