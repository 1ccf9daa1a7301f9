from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException, status
from pydantic import ValidationError

from app.clients.leancloud import LeanCloudClient, LeanCloudError
from app.config import Settings, load_settings
from app.models.coach import EDITABLE_FIELDS, CoachSettingsUpdate
from app.repositories.evaluation_repository import (
    CoachActivity,
    EvaluationRepository,
    PlayerEvaluationRecord,
)
from app.repositories.profile_repository import (
    CoachProfileRecord,
    PlayerProfileRecord,
    ProfileRepository,
)
from app.services.eligibility import expected_player_gender
from app.services.evaluation_store import EvaluationStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardPlayer:
    player: PlayerProfileRecord
    evaluation: PlayerEvaluationRecord | None


@dataclass(frozen=True)
class Dashboard:
    coach: CoachProfileRecord
    target_gender: str | None
    players: list[DashboardPlayer]
    activity: CoachActivity

    @property
    def evaluated_count(self) -> int:
        return sum(1 for item in self.players if item.evaluation is not None)

    @property
    def available_for_transfer_count(self) -> int:
        return sum(
            1
            for item in self.players
            if item.evaluation is not None and item.evaluation.available_to_transfer
        )


@dataclass(frozen=True)
class CoachSettings:
    coach: CoachProfileRecord
    activity: CoachActivity


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"message": "NJCAA coach profile not found", "code": "COACH_PROFILE_NOT_FOUND"},
    )


def _storage_failure(message: str, code: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": message, "code": code},
    )


class CoachService:
    def __init__(
        self,
        profiles: ProfileRepository | None = None,
        evaluations: EvaluationRepository | None = None,
        *,
        settings: Settings | None = None,
    ) -> None:
        self._client: LeanCloudClient | None = None
        if profiles is None or evaluations is None:
            self._client = LeanCloudClient.from_settings(settings or load_settings())
        self.profiles = profiles or ProfileRepository(self._client)
        self.store = EvaluationStore(evaluations or EvaluationRepository(self._client))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    async def _coach(self, user_id: str) -> CoachProfileRecord:
        coach = await self.profiles.get_coach_by_user(user_id)
        if coach is None:
            raise _not_found()
        return coach

    async def dashboard(self, user_id: str) -> Dashboard:
        try:
            coach = await self._coach(user_id)
            gender = expected_player_gender(coach.team_sport)
            players: list[PlayerProfileRecord] = []
            if gender is not None:
                players = await self.profiles.list_players(
                    college_id=coach.college_id, gender=gender
                )
            else:
                logger.warning("Coach %s has unmapped team sport %s", coach.id, coach.team_sport)
            current = {
                record.player_id: record
                for record in await self.store.coach_evaluations(coach.id)
                if record.is_current
            }
            activity = await self.store.coach_activity(coach.id)
        except LeanCloudError as exc:
            logger.error("Dashboard load failed for user=%s: %s", user_id, exc)
            raise _storage_failure("Failed to load dashboard", "DASHBOARD_ERROR") from exc
        return Dashboard(
            coach=coach,
            target_gender=gender,
            players=[DashboardPlayer(player, current.get(player.id)) for player in players],
            activity=activity,
        )

    async def settings(self, user_id: str) -> CoachSettings:
        try:
            coach = await self._coach(user_id)
            activity = await self.store.coach_activity(coach.id)
        except LeanCloudError as exc:
            logger.error("Settings load failed for user=%s: %s", user_id, exc)
            raise _storage_failure("Failed to load settings", "SETTINGS_ERROR") from exc
        return CoachSettings(coach=coach, activity=activity)

    async def update_settings(
        self, user_id: str, data: dict[str, Any]
    ) -> tuple[CoachProfileRecord, list[str]]:
        try:
            update = CoachSettingsUpdate.model_validate(data)
        except ValidationError as exc:
            errors = [
                {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
                for err in exc.errors()
            ]
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "message": "Validation error in settings data",
                    "code": "SETTINGS_VALIDATION_ERROR",
                    "errors": errors,
                },
            ) from exc
        changes = update.model_dump(include=set(EDITABLE_FIELDS), exclude_none=True)
        if not changes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"message": "No valid fields provided for update", "code": "NO_VALID_FIELDS"},
            )
        try:
            coach = await self._coach(user_id)
            updated = await self.profiles.update_coach(coach.id, changes)
        except LeanCloudError as exc:
            logger.error("Settings update failed for user=%s: %s", user_id, exc)
            raise _storage_failure("Failed to update settings", "UPDATE_SETTINGS_ERROR") from exc
        if updated is None:
            raise _not_found()
        logger.info("Coach %s updated settings: %s", coach.id, ", ".join(sorted(changes)))
        return updated, sorted(changes)
