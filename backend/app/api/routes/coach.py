from __future__ import annotations

from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends

from app.api.deps.coach_auth import CoachIdentity
from app.models.coach import EDITABLE_FIELD_MAP
from app.repositories.evaluation_repository import CoachActivity
from app.repositories.profile_repository import CoachProfileRecord
from app.services.coach_service import CoachService, DashboardPlayer

router = APIRouter(prefix="/njcaa-coach", tags=["njcaa-coach"])


async def _service() -> AsyncIterator[CoachService]:
    service = CoachService()
    try:
        yield service
    finally:
        await service.close()


def _coach_response(coach: CoachProfileRecord) -> dict[str, Any]:
    return {
        "id": coach.id,
        "userId": coach.user_id,
        "firstName": coach.first_name,
        "lastName": coach.last_name,
        "collegeId": coach.college_id,
        "teamSport": coach.team_sport,
        "position": coach.position,
        "division": coach.division,
        "phoneNumber": coach.phone_number,
    }


def _activity_response(activity: CoachActivity) -> dict[str, Any]:
    return {
        "totalEvaluations": activity.total_evaluations,
        "lastEvaluationDate": activity.last_evaluation_date,
    }


def _dashboard_player(item: DashboardPlayer) -> dict[str, Any]:
    player = item.player
    evaluation = item.evaluation
    return {
        "id": player.id,
        "firstName": player.first_name,
        "lastName": player.last_name,
        "gender": player.gender,
        "position": player.position,
        "collegeId": player.college_id,
        "evaluationStatus": {
            "hasEvaluation": evaluation is not None,
            "lastEvaluated": evaluation.evaluation_date if evaluation else None,
            "availableToTransfer": evaluation.available_to_transfer if evaluation else None,
            "evaluationVersion": evaluation.version if evaluation else 0,
        },
    }


@router.get("/dashboard")
async def get_dashboard(
    user_id: str = CoachIdentity,
    service: CoachService = Depends(_service),
):
    dashboard = await service.dashboard(user_id)
    total = len(dashboard.players)
    return {
        "coach": _coach_response(dashboard.coach),
        "players": [_dashboard_player(item) for item in dashboard.players],
        "statistics": {
            "totalPlayers": total,
            "evaluatedPlayers": dashboard.evaluated_count,
            "unevaluatedPlayers": total - dashboard.evaluated_count,
            "availableForTransfer": dashboard.available_for_transfer_count,
            **_activity_response(dashboard.activity),
        },
        "metadata": {
            "teamSport": dashboard.coach.team_sport,
            "targetGender": dashboard.target_gender,
            "collegeFilter": dashboard.coach.college_id,
        },
    }


@router.get("/settings")
async def get_settings(
    user_id: str = CoachIdentity,
    service: CoachService = Depends(_service),
):
    settings = await service.settings(user_id)
    return {
        "profile": _coach_response(settings.coach),
        "activityStats": {
            **_activity_response(settings.activity),
            "accountCreatedDate": settings.coach.created_at,
        },
        "editableFields": dict(EDITABLE_FIELD_MAP),
    }


@router.put("/settings")
async def update_settings(
    payload: dict[str, Any],
    user_id: str = CoachIdentity,
    service: CoachService = Depends(_service),
):
    coach, updated_fields = await service.update_settings(user_id, payload)
    return {
        "message": "Settings updated successfully",
        "updatedFields": updated_fields,
        "profile": _coach_response(coach),
    }
