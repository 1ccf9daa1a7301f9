from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable

from app.repositories.evaluation_repository import (
    CoachActivity,
    EvaluationRepository,
    PlayerEvaluationRecord,
    VersionConflictError,
)
from app.telemetry.otel import start_span
from app.telemetry.tracing import build_pair_attributes, emit_event, emit_metric

logger = logging.getLogger(__name__)

DEFAULT_WRITE_ATTEMPTS = 5

_PAIR_LOCKS: dict[tuple[str, str], asyncio.Lock] = {}
_PAIR_USERS: dict[tuple[str, str], int] = {}


class EvaluationConflictError(Exception):
    """Concurrent writers kept taking the next version for the same pair."""


@dataclass(frozen=True)
class SubmissionResult:
    record: PlayerEvaluationRecord
    is_new_subject: bool
    previous_version: int | None


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@asynccontextmanager
async def _pair_lock(pair: tuple[str, str]) -> AsyncIterator[None]:
    lock = _PAIR_LOCKS.setdefault(pair, asyncio.Lock())
    _PAIR_USERS[pair] = _PAIR_USERS.get(pair, 0) + 1
    try:
        async with lock:
            yield
    finally:
        _PAIR_USERS[pair] -= 1
        if not _PAIR_USERS[pair]:
            del _PAIR_USERS[pair]
            _PAIR_LOCKS.pop(pair, None)


class EvaluationStore:
    """Owns every write of evaluation records.

    A submission is a single append of ``latest.version + 1``. Inside one
    process writes for a pair are serialized by a lock; across processes the
    unique version key rejects the loser, which re-reads and tries the next
    version.
    """

    def __init__(
        self,
        repo: EvaluationRepository,
        *,
        max_attempts: int = DEFAULT_WRITE_ATTEMPTS,
        clock: Callable[[], str] = _utc_now,
    ) -> None:
        self._repo = repo
        self._max_attempts = max_attempts
        self._clock = clock

    async def submit_evaluation(
        self, coach_id: str, player_id: str, payload: dict[str, Any]
    ) -> SubmissionResult:
        async with _pair_lock((coach_id, player_id)):
            for attempt in range(1, self._max_attempts + 1):
                latest = await self._repo.latest_for_pair(coach_id, player_id)
                version = latest.version + 1 if latest else 1
                data = {
                    **payload,
                    "coachId": coach_id,
                    "playerId": player_id,
                    "evaluationVersion": version,
                    "evaluationDate": self._clock(),
                }
                try:
                    with start_span(
                        "evaluation.append",
                        build_pair_attributes(coach_id, player_id, {"version": version}),
                    ):
                        record = await self._repo.append(data)
                except VersionConflictError:
                    logger.warning(
                        "Version %s taken for coach=%s player=%s (attempt %s/%s)",
                        version,
                        coach_id,
                        player_id,
                        attempt,
                        self._max_attempts,
                    )
                    continue
                emit_event(
                    "evaluation.submitted",
                    coach_id=coach_id,
                    player_id=player_id,
                    attributes={"version": record.version, "isUpdate": latest is not None},
                )
                emit_metric(
                    "evaluation.write_attempts",
                    attempt,
                    coach_id=coach_id,
                    attributes={"playerId": player_id},
                )
                return SubmissionResult(
                    record=record,
                    is_new_subject=latest is None,
                    previous_version=latest.version if latest else None,
                )
        raise EvaluationConflictError(
            f"Could not store evaluation for coach={coach_id} player={player_id} "
            f"after {self._max_attempts} attempts"
        )

    async def current_evaluation(
        self, coach_id: str, player_id: str
    ) -> PlayerEvaluationRecord | None:
        return await self._repo.latest_for_pair(coach_id, player_id)

    async def evaluation_versions(
        self, coach_id: str, player_id: str
    ) -> list[PlayerEvaluationRecord]:
        return await self._repo.list_for_pair(coach_id, player_id)

    async def coach_evaluations(self, coach_id: str) -> list[PlayerEvaluationRecord]:
        return await self._repo.list_for_coach(coach_id)

    async def coach_activity(self, coach_id: str) -> CoachActivity:
        return await self._repo.activity_for_coach(coach_id)
