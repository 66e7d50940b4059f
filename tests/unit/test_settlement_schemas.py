"""Unit tests for settlement intake payloads and admin schemas."""

import pytest
from pydantic import ValidationError

from src.pts_settlement.application.schemas import (
    CreateSettlementRequest,
    SettlementJobMessage,
    SettlementJobResponse,
)
from src.pts_settlement.domain.models import SettlementJob


class TestSettlementJobMessage:
    @pytest.mark.parametrize("raw", ["42", " 42\n", b"42", '{"job_id": 42}'])
    def test_accepts_valid_payloads(self, raw) -> None:
        assert SettlementJobMessage.parse_raw_payload(raw).job_id == 42

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "abc",
            "0",
            "-3",
            "4.5",
            "true",
            "null",
            "[42]",
            '"42"',
            '{"job_id": "42"}',
            '{"job_id": 42, "market_id": 1}',
            '{"jobId": 42}',
        ],
    )
    def test_rejects_malformed_payloads(self, raw: str) -> None:
        with pytest.raises(ValueError):
            SettlementJobMessage.parse_raw_payload(raw)

    def test_to_payload_is_bare_id(self) -> None:
        assert SettlementJobMessage(job_id=7).to_payload() == "7"

    def test_is_immutable(self) -> None:
        message = SettlementJobMessage(job_id=7)
        with pytest.raises(ValidationError):
            message.job_id = 8


class TestCreateSettlementRequest:
    def test_requires_positive_ids(self) -> None:
        with pytest.raises(ValidationError):
            CreateSettlementRequest(market_id=0, result_option_id=1)

    def test_valid(self) -> None:
        body = CreateSettlementRequest(market_id=3, result_option_id=9)
        assert (body.market_id, body.result_option_id) == (3, 9)


class TestSettlementJobResponse:
    def test_from_job(self) -> None:
        job = SettlementJob(id=5, market_id=3, result_option_id=9, status="queued", resolved_by=2)

        resp = SettlementJobResponse.from_job(job, enqueued=True)

        assert resp.id == 5
        assert resp.status == "queued"
        assert resp.attempts == 0
        assert resp.resolved_by == 2
        assert resp.enqueued is True
