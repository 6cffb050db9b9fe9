from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

StepStatus = Literal["passed", "failed", "broken"]


class CleanupRequest(BaseModel):
    days: int | None = Field(default=None, ge=0, le=3650)


class StartResultRequest(BaseModel):
    script_name: str = Field(min_length=1, max_length=500)


class RecordStepRequest(BaseModel):
    name: str = Field(min_length=1, max_length=500)
    status: StepStatus
    duration_ms: int | None = Field(default=None, ge=0)


class EndResultRequest(BaseModel):
    status: StepStatus
    error_message: str | None = Field(default=None, max_length=4000)
