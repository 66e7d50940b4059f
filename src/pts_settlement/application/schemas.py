"""Pydantic schemas for settlement intake and the admin API."""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, ValidationError

from src.pts_settlement.domain.models import SettlementJob


class SettlementJobMessage(BaseModel):
    """Queue payload: the job id and nothing else.

    Everything else is read from the persisted settlement_jobs row.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    job_id: PositiveInt

    @classmethod
    def parse_raw_payload(cls, raw: str | bytes) -> "SettlementJobMessage":
        """Accept a bare integer ("42") or a JSON object ({"job_id": 42}).

        Raises:
            ValueError: payload is not a valid job reference.
        """
        if isinstance(raw, bytes):
            raw = raw.decode()
        text = raw.strip()
        try:
            decoded: Any = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Malformed settlement payload: {raw!r}") from exc
        if isinstance(decoded, bool):
            raise ValueError(f"Malformed settlement payload: {raw!r}")
        if isinstance(decoded, int):
            decoded = {"job_id": decoded}
        if not isinstance(decoded, dict):
            raise ValueError(f"Malformed settlement payload: {raw!r}")
        try:
            return cls.model_validate(decoded, strict=True)
        except ValidationError as exc:
            raise ValueError(f"Invalid settlement payload: {raw!r}") from exc

    def to_payload(self) -> str:
        return str(self.job_id)


class CreateSettlementRequest(BaseModel):
    market_id: PositiveInt
    result_option_id: PositiveInt


class SettlementJobResponse(BaseModel):
    id: int
    market_id: int
    result_option_id: int
    status: str
    attempts: int
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None
    resolved_by: int | None = None
    created_at: datetime | None = None
    enqueued: bool = Field(False, description="True when the push notification was delivered")

    @classmethod
    def from_job(cls, job: SettlementJob, enqueued: bool = False) -> "SettlementJobResponse":
        return cls(
            id=job.id,
            market_id=job.market_id,
            result_option_id=job.result_option_id,
            status=job.status,
            attempts=job.attempts,
            started_at=job.started_at,
            completed_at=job.completed_at,
            error_message=job.error_message,
            resolved_by=job.resolved_by,
            created_at=job.created_at,
            enqueued=enqueued,
        )
