from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from app.clients.leancloud import LeanCloudError
from app.repositories.profile_repository import (
    CoachProfileRecord,
    PlayerProfileRecord,
    ProfileRepository,
)
from app.telemetry.tracing import emit_event

logger = logging.getLogger(__name__)

TEAM_SPORT_GENDER: dict[str, str] = {
    "mens_soccer": "male",
    "womens_soccer": "female",
}


class DenialReason(str, Enum):
    EVALUATOR_NOT_FOUND = "evaluator_not_found"
    SUBJECT_NOT_FOUND = "subject_not_found"
    SUBJECT_NOT_VISIBLE = "subject_not_visible"
    ORGANIZATION_MISMATCH = "organization_mismatch"
    CATEGORY_MISMATCH = "category_mismatch"


@dataclass(frozen=True)
class EligibilityDecision:
    allowed: bool
    reason: DenialReason | None = None
    message: str | None = None
    coach: CoachProfileRecord | None = None
    player: PlayerProfileRecord | None = None
    system_error: bool = False


def expected_player_gender(team_sport: str) -> str | None:
    """Player gender a coach of ``team_sport`` may evaluate, or None if unmapped."""
    return TEAM_SPORT_GENDER.get(team_sport)


def _deny(
    reason: DenialReason,
    message: str,
    coach: CoachProfileRecord | None = None,
    player: PlayerProfileRecord | None = None,
) -> EligibilityDecision:
    return EligibilityDecision(
        allowed=False, reason=reason, message=message, coach=coach, player=player
    )


class EligibilityGate:
    def __init__(self, profiles: ProfileRepository) -> None:
        self._profiles = profiles

    async def check_eligibility(self, coach_user_id: str, player_id: str) -> EligibilityDecision:
        decision = await self._decide(coach_user_id, player_id)
        if decision.reason is not None:
            emit_event(
                "evaluation.denied",
                coach_id=decision.coach.id if decision.coach else None,
                player_id=player_id,
                attributes={"userId": coach_user_id, "reason": decision.reason.value},
            )
        return decision

    async def _decide(self, coach_user_id: str, player_id: str) -> EligibilityDecision:
        try:
            coach = await self._profiles.get_coach_by_user(coach_user_id)
            if coach is None:
                return _deny(DenialReason.EVALUATOR_NOT_FOUND, "Coach profile not found")
            player = await self._profiles.get_player(player_id)
        except LeanCloudError as exc:
            logger.error(
                "Profile lookup failed for user=%s player=%s: %s", coach_user_id, player_id, exc
            )
            return EligibilityDecision(
                allowed=False, message="Validation error occurred", system_error=True
            )

        if player is None:
            return _deny(DenialReason.SUBJECT_NOT_FOUND, "Player profile not found", coach)
        if not player.is_active or not player.is_profile_visible:
            return _deny(
                DenialReason.SUBJECT_NOT_VISIBLE,
                "Player profile is not active or visible",
                coach,
                player,
            )
        if player.college_id != coach.college_id:
            return _deny(
                DenialReason.ORGANIZATION_MISMATCH,
                "Coach and player are not from the same college",
                coach,
                player,
            )
        expected_gender = expected_player_gender(coach.team_sport)
        if expected_gender is None:
            return _deny(
                DenialReason.CATEGORY_MISMATCH,
                f"Coach team sport {coach.team_sport or 'unknown'} has no player category",
                coach,
                player,
            )
        if player.gender != expected_gender:
            return _deny(
                DenialReason.CATEGORY_MISMATCH,
                f"Coach manages {coach.team_sport} but player is {player.gender or 'unknown'}",
                coach,
                player,
            )
        return EligibilityDecision(allowed=True, coach=coach, player=player)
