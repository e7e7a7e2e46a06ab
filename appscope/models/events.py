from pydantic import BaseModel, Field
from datetime import date as Date, datetime
from typing import Any, List, Optional


class TrackEventRequest(BaseModel):
    app_id: str
    event: str
    user_id: str
    properties: Any = Field(default_factory=dict)


class FeedbackRequest(BaseModel):
    app_id: str
    content: str = Field(min_length=1)
    user_id: Optional[str] = None
    contact: Optional[str] = None
    properties: Any = Field(default_factory=dict)


class SuccessResponse(BaseModel):
    success: bool = True


class AppSummary(BaseModel):
    app_id: str
    dau_today: int
    total_installs: int


class AppsResponse(BaseModel):
    apps: List[AppSummary]


class DauPoint(BaseModel):
    date: Date
    dau: int


class DauResponse(BaseModel):
    data: List[DauPoint]


class InstallPoint(BaseModel):
    date: Date
    installs: int


class InstallsResponse(BaseModel):
    total: int
    data: List[InstallPoint]


class RetentionCohort(BaseModel):
    cohort_date: Date
    day0: int
    day1: Optional[float] = None
    day7: Optional[float] = None
    day30: Optional[float] = None


class RetentionResponse(BaseModel):
    data: List[RetentionCohort]


class FeedbackItem(BaseModel):
    id: int
    content: str
    user_id: Optional[str] = None
    contact: Optional[str] = None
    created_at: datetime


class FeedbacksResponse(BaseModel):
    data: List[FeedbackItem]
