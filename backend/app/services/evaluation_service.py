from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from app.clients.leancloud import LeanCloudClient, LeanCloudError
from app.config import Settings, load_settings
from app.repositories.evaluation_repository import EvaluationRepository, PlayerEvaluationRecord
from app.repositories.profile_repository import (
    CoachProfileRecord,
    PlayerProfileRecord,
    ProfileRepository,
)
from app.services.eligibility import DenialReason, EligibilityDecision, EligibilityGate
from app.services.evaluation_store import EvaluationConflictError, EvaluationStore
from app.services.evaluation_validator import FieldError, validate_evaluation

logger = logging.getLogger(__name__)


class OutcomeStatus(str, Enum):
    CREATED = "created"
    NEW_VERSION = "new_version"
    FOUND = "found"
    NOT_FOUND = "not_found"
    DENIED = "denied"
    INVALID = "invalid"
    SYSTEM_ERROR = "system_error"


@dataclass(frozen=True)
class EvaluationOutcome:
    status: OutcomeStatus
    coach: CoachProfileRecord | None = None
    player: PlayerProfileRecord | None = None
    record: PlayerEvaluationRecord | None = None
    records: list[PlayerEvaluationRecord] = field(default_factory=list)
    previous_version: int | None = None
    reason: DenialReason | None = None
    message: str | None = None
    errors: list[FieldError] = field(default_factory=list)


@dataclass(frozen=True)
class PlayerHistory:
    player_id: str
    player: PlayerProfileRecord | None
    evaluations: list[PlayerEvaluationRecord]


@dataclass(frozen=True)
class EvaluationHistory:
    coach: CoachProfileRecord
    records: list[PlayerEvaluationRecord]
    by_player: list[PlayerHistory]

    @property
    def current_count(self) -> int:
        return sum(1 for record in self.records if record.is_current)

    @property
    def historical_count(self) -> int:
        return len(self.records) - self.current_count


def _refused(decision: EligibilityDecision) -> EvaluationOutcome:
    if decision.system_error:
        return EvaluationOutcome(status=OutcomeStatus.SYSTEM_ERROR, message=decision.message)
    return EvaluationOutcome(
        status=OutcomeStatus.DENIED,
        coach=decision.coach,
        player=decision.player,
        reason=decision.reason,
        message=decision.message,
    )


class EvaluationService:
    """Eligibility check, payload validation and versioned write, in that order."""

    def __init__(
        self,
        profiles: ProfileRepository | None = None,
        evaluations: EvaluationRepository | None = None,
        *,
        settings: Settings | None = None,
        current_year: int | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self._client: LeanCloudClient | None = None
        if profiles is None or evaluations is None:
            self._client = LeanCloudClient.from_settings(self.settings)
        self.profiles = profiles or ProfileRepository(self._client)
        self.gate = EligibilityGate(self.profiles)
        self.store = EvaluationStore(
            evaluations or EvaluationRepository(self._client),
            max_attempts=self.settings.evaluation_write_attempts,
        )
        self._current_year = current_year

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    async def submit(
        self, coach_user_id: str, player_id: str, payload: Any
    ) -> EvaluationOutcome:
        decision = await self.gate.check_eligibility(coach_user_id, player_id)
        if not decision.allowed:
            logger.info(
                "Evaluation refused user=%s player=%s reason=%s",
                coach_user_id,
                player_id,
                decision.reason.value if decision.reason else "system_error",
            )
            return _refused(decision)

        validation = validate_evaluation(
            payload,
            current_year=self._current_year,
            year_span=self.settings.graduation_year_span,
        )
        if not validation.valid:
            logger.info(
                "Evaluation payload invalid player=%s errors=%s", player_id, len(validation.errors)
            )
            return EvaluationOutcome(
                status=OutcomeStatus.INVALID,
                coach=decision.coach,
                player=decision.player,
                message="Player evaluation validation failed",
                errors=validation.errors,
            )

        coach = decision.coach
        try:
            result = await self.store.submit_evaluation(coach.id, player_id, validation.value)
        except (LeanCloudError, EvaluationConflictError) as exc:
            logger.error("Evaluation write failed coach=%s player=%s: %s", coach.id, player_id, exc)
            return EvaluationOutcome(
                status=OutcomeStatus.SYSTEM_ERROR,
                coach=coach,
                player=decision.player,
                message="Failed to process player evaluation",
            )
        logger.info(
            "Stored evaluation coach=%s player=%s version=%s",
            coach.id,
            player_id,
            result.record.version,
        )
        return EvaluationOutcome(
            status=OutcomeStatus.CREATED if result.is_new_subject else OutcomeStatus.NEW_VERSION,
            coach=coach,
            player=decision.player,
            record=result.record,
            previous_version=result.previous_version,
        )

    async def current(self, coach_user_id: str, player_id: str) -> EvaluationOutcome:
        decision = await self.gate.check_eligibility(coach_user_id, player_id)
        if not decision.allowed:
            return _refused(decision)
        try:
            record = await self.store.current_evaluation(decision.coach.id, player_id)
        except LeanCloudError as exc:
            logger.error("Current evaluation lookup failed player=%s: %s", player_id, exc)
            return EvaluationOutcome(status=OutcomeStatus.SYSTEM_ERROR)
        if record is None:
            return EvaluationOutcome(
                status=OutcomeStatus.NOT_FOUND,
                coach=decision.coach,
                player=decision.player,
                message="No evaluation found for this player",
            )
        return EvaluationOutcome(
            status=OutcomeStatus.FOUND,
            coach=decision.coach,
            player=decision.player,
            record=record,
        )

    async def versions(self, coach_user_id: str, player_id: str) -> EvaluationOutcome:
        decision = await self.gate.check_eligibility(coach_user_id, player_id)
        if not decision.allowed:
            return _refused(decision)
        try:
            records = await self.store.evaluation_versions(decision.coach.id, player_id)
        except LeanCloudError as exc:
            logger.error("Evaluation versions lookup failed player=%s: %s", player_id, exc)
            return EvaluationOutcome(status=OutcomeStatus.SYSTEM_ERROR)
        return EvaluationOutcome(
            status=OutcomeStatus.FOUND,
            coach=decision.coach,
            player=decision.player,
            records=records,
        )

    async def history(self, coach_user_id: str) -> EvaluationHistory | None:
        """All of a coach's evaluations, newest first, grouped by player.

        Returns None when the user has no coach profile. Storage errors
        propagate as ``LeanCloudError``.
        """
        coach = await self.profiles.get_coach_by_user(coach_user_id)
        if coach is None:
            return None
        records = await self.store.coach_evaluations(coach.id)
        grouped: dict[str, list[PlayerEvaluationRecord]] = {}
        for record in records:
            grouped.setdefault(record.player_id, []).append(record)
        players = await self.profiles.get_players(list(grouped))
        by_player = [
            PlayerHistory(player_id=player_id, player=players.get(player_id), evaluations=items)
            for player_id, items in grouped.items()
        ]
        return EvaluationHistory(coach=coach, records=records, by_player=by_player)
