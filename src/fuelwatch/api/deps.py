"""Request-scoped access to the price service, and the refresh-job registry."""

from __future__ import annotations

import hmac
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from fastapi import Request
from fastapi.responses import JSONResponse

from fuelwatch.api.schemas import ErrorResponse
from fuelwatch.core.config import FuelwatchConfig
from fuelwatch.service.facade import PriceService

logger = logging.getLogger(__name__)


class RefreshJobStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class RefreshJob:
    """One manual ``POST /refresh`` request and its outcome."""

    job_id: str
    created_at: datetime
    status: RefreshJobStatus = RefreshJobStatus.PENDING
    completed_at: datetime | None = None
    station_count: int | None = None
    last_updated: str | None = None
    failed_sources: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def finished(self) -> bool:
        return self.status in (
            RefreshJobStatus.COMPLETED,
            RefreshJobStatus.SKIPPED,
            RefreshJobStatus.FAILED,
        )

    def result(self) -> dict[str, Any] | None:
        if self.station_count is None:
            return None
        return {
            "station_count": self.station_count,
            "last_updated": self.last_updated,
            "failed_sources": self.failed_sources,
        }


class RefreshJobs:
    """Manual refresh jobs, newest last, capped at ``max_jobs``.

    When full, the oldest finished job is dropped first; unfinished jobs
    are only dropped once no finished job is left to evict.
    """

    def __init__(self, max_jobs: int = 100) -> None:
        self._max_jobs = max_jobs
        self._jobs: OrderedDict[str, RefreshJob] = OrderedDict()

    def __len__(self) -> int:
        return len(self._jobs)

    def get(self, job_id: str) -> RefreshJob | None:
        return self._jobs.get(job_id)

    def submit(self) -> RefreshJob:
        job = RefreshJob(
            job_id=f"refresh-{uuid4().hex[:8]}",
            created_at=datetime.now(tz=UTC),
        )
        self._jobs[job.job_id] = job
        while len(self._jobs) > self._max_jobs:
            victim = next(
                (j for j in self._jobs.values() if j.finished),
                next(iter(self._jobs.values())),
            )
            del self._jobs[victim.job_id]
        return job

    async def run(self, job: RefreshJob, service: PriceService) -> None:
        """Force one aggregation pass for ``job``.

        A refresh already in flight (scheduled, or from another job) is not
        joined: the job is marked SKIPPED and reports the list being served.
        """
        if service.is_fetching:
            self._finish(job, RefreshJobStatus.SKIPPED, service)
            logger.info("Refresh job %s skipped: a refresh is in flight", job.job_id)
            return

        job.status = RefreshJobStatus.RUNNING
        try:
            await service.fetch_fuel_prices(force_refresh=True)
        except Exception as e:
            job.status = RefreshJobStatus.FAILED
            job.completed_at = datetime.now(tz=UTC)
            job.error = str(e)
            logger.warning("Refresh job %s failed: %s", job.job_id, e)
            return

        self._finish(job, RefreshJobStatus.COMPLETED, service)
        result = service.last_result
        job.failed_sources = list(result.failed_sources) if result else []

    @staticmethod
    def _finish(job: RefreshJob, status: RefreshJobStatus, service: PriceService) -> None:
        job.status = status
        job.completed_at = datetime.now(tz=UTC)
        job.station_count = len(service.cached_stations())
        job.last_updated = service.get_last_updated()


@dataclass
class AppState:
    """Everything a route needs, attached to ``app.state`` by the lifespan."""

    config: FuelwatchConfig
    service: PriceService
    jobs: RefreshJobs


def _state(request: Request) -> AppState:
    return request.app.state.app_state


def get_config(request: Request) -> FuelwatchConfig:
    return _state(request).config


def get_service(request: Request) -> PriceService:
    return _state(request).service


def get_jobs(request: Request) -> RefreshJobs:
    return _state(request).jobs


# Reachable without a key, for load-balancer health checks.
OPEN_PATHS = frozenset({"/api/health"})


async def api_key_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Require ``X-API-Key`` on every non-open path once a key is configured."""
    expected = request.app.state.config.api.api_key
    if not expected or request.url.path in OPEN_PATHS:
        return await call_next(request)

    supplied = request.headers.get("X-API-Key", "")
    if not hmac.compare_digest(supplied.encode(), expected.encode()):
        return JSONResponse(
            status_code=401,
            content=ErrorResponse(
                error="Unauthorized", detail="Invalid or missing API key"
            ).model_dump(),
        )
    return await call_next(request)
