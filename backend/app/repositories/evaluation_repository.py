from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any

from app.clients.leancloud import LeanCloudClient, LeanCloudError

EVALUATION_CLASS = "PlayerEvaluation"
QUERY_LIMIT = 1000


class VersionConflictError(Exception):
    """Another writer already stored this version for the pair."""

    def __init__(self, coach_id: str, player_id: str, version: int) -> None:
        super().__init__(f"Version {version} already exists for coach={coach_id} player={player_id}")
        self.coach_id = coach_id
        self.player_id = player_id
        self.version = version


@dataclass(frozen=True)
class PlayerEvaluationRecord:
    id: str
    coach_id: str
    player_id: str
    version: int
    available_to_transfer: bool
    expected_graduation_year: int
    role_in_team: str
    performance_level: str
    player_strengths: str
    improvement_areas: str
    mentality: str
    coachability: str
    technique: str
    physique: str
    coach_final_comment: str
    evaluation_date: str | None
    created_at: str | None
    is_current: bool = False


@dataclass(frozen=True)
class CoachActivity:
    total_evaluations: int
    last_evaluation_date: str | None


def pair_version_key(coach_id: str, player_id: str, version: int) -> str:
    return f"{coach_id}:{player_id}:{version}"


def _normalize_date(raw: Any) -> str | None:
    if isinstance(raw, dict):
        return raw.get("iso") or raw.get("value")
    if isinstance(raw, str):
        return raw
    return None


def _evaluation_from_lc(payload: dict[str, Any]) -> PlayerEvaluationRecord:
    return PlayerEvaluationRecord(
        id=payload["objectId"],
        coach_id=payload.get("coachId", ""),
        player_id=payload.get("playerId", ""),
        version=int(payload.get("evaluationVersion", 1) or 1),
        available_to_transfer=bool(payload.get("availableToTransfer", False)),
        expected_graduation_year=int(payload.get("expectedGraduationYear", 0) or 0),
        role_in_team=payload.get("roleInTeam", ""),
        performance_level=payload.get("performanceLevel", ""),
        player_strengths=payload.get("playerStrengths", ""),
        improvement_areas=payload.get("improvementAreas", ""),
        mentality=payload.get("mentality", ""),
        coachability=payload.get("coachability", ""),
        technique=payload.get("technique", ""),
        physique=payload.get("physique", ""),
        coach_final_comment=payload.get("coachFinalComment", ""),
        evaluation_date=_normalize_date(payload.get("evaluationDate")),
        created_at=_normalize_date(payload.get("createdAt")),
    )


def _mark_current(records: list[PlayerEvaluationRecord]) -> list[PlayerEvaluationRecord]:
    latest: dict[tuple[str, str], int] = {}
    for record in records:
        pair = (record.coach_id, record.player_id)
        latest[pair] = max(latest.get(pair, 0), record.version)
    return [
        dataclasses.replace(
            record, is_current=record.version == latest[(record.coach_id, record.player_id)]
        )
        for record in records
    ]


class EvaluationRepository:
    """Append-only storage of evaluation versions.

    Rows are never updated. The current evaluation of a pair is the row with
    the highest ``evaluationVersion``; ``pairVersionKey`` carries a unique
    index so two writers cannot store the same version.
    """

    def __init__(self, client: LeanCloudClient) -> None:
        self._client = client

    async def latest_for_pair(
        self, coach_id: str, player_id: str
    ) -> PlayerEvaluationRecord | None:
        response = await self._client.query(
            EVALUATION_CLASS,
            {"coachId": coach_id, "playerId": player_id},
            order="-evaluationVersion",
            limit=1,
        )
        results = response.get("results", [])
        if not results:
            return None
        return dataclasses.replace(_evaluation_from_lc(results[0]), is_current=True)

    async def list_for_pair(self, coach_id: str, player_id: str) -> list[PlayerEvaluationRecord]:
        response = await self._client.query(
            EVALUATION_CLASS,
            {"coachId": coach_id, "playerId": player_id},
            order="evaluationVersion",
            limit=QUERY_LIMIT,
        )
        records = [_evaluation_from_lc(item) for item in response.get("results", [])]
        return _mark_current(records)

    async def list_for_coach(self, coach_id: str) -> list[PlayerEvaluationRecord]:
        response = await self._client.query(
            EVALUATION_CLASS,
            {"coachId": coach_id},
            order="-evaluationDate,-evaluationVersion",
            limit=QUERY_LIMIT,
        )
        records = [_evaluation_from_lc(item) for item in response.get("results", [])]
        return _mark_current(records)

    async def activity_for_coach(self, coach_id: str) -> CoachActivity:
        response = await self._client.query(
            EVALUATION_CLASS,
            {"coachId": coach_id},
            order="-evaluationDate",
            limit=1,
            count=True,
        )
        results = response.get("results", [])
        last = _normalize_date(results[0].get("evaluationDate")) if results else None
        return CoachActivity(
            total_evaluations=int(response.get("count", len(results)) or 0),
            last_evaluation_date=last,
        )

    async def append(self, payload: dict[str, Any]) -> PlayerEvaluationRecord:
        coach_id = payload["coachId"]
        player_id = payload["playerId"]
        version = payload["evaluationVersion"]
        data = {**payload, "pairVersionKey": pair_version_key(coach_id, player_id, version)}
        try:
            response = await self._client.post_json(f"/1.1/classes/{EVALUATION_CLASS}", data)
        except LeanCloudError as exc:
            if exc.is_duplicate:
                raise VersionConflictError(coach_id, player_id, version) from exc
            raise
        record = data | response
        return dataclasses.replace(_evaluation_from_lc(record), is_current=True)
