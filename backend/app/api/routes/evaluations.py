from __future__ import annotations

from typing import Any, AsyncIterator

from fastapi import APIRouter, Body, Depends, HTTPException, status

from app.api.deps.coach_auth import CoachIdentity
from app.clients.leancloud import LeanCloudError
from app.repositories.evaluation_repository import PlayerEvaluationRecord
from app.repositories.profile_repository import PlayerProfileRecord
from app.services.evaluation_service import EvaluationOutcome, EvaluationService, OutcomeStatus

router = APIRouter(prefix="/njcaa-coach", tags=["evaluations"])


async def _service() -> AsyncIterator[EvaluationService]:
    service = EvaluationService()
    try:
        yield service
    finally:
        await service.close()


def evaluation_response(record: PlayerEvaluationRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "coachId": record.coach_id,
        "playerId": record.player_id,
        "evaluationVersion": record.version,
        "isCurrent": record.is_current,
        "availableToTransfer": record.available_to_transfer,
        "expectedGraduationYear": record.expected_graduation_year,
        "roleInTeam": record.role_in_team,
        "performanceLevel": record.performance_level,
        "playerStrengths": record.player_strengths,
        "improvementAreas": record.improvement_areas,
        "mentality": record.mentality,
        "coachability": record.coachability,
        "technique": record.technique,
        "physique": record.physique,
        "coachFinalComment": record.coach_final_comment,
        "evaluationDate": record.evaluation_date,
        "createdAt": record.created_at,
    }


def player_summary(player: PlayerProfileRecord | None) -> dict[str, Any] | None:
    if player is None:
        return None
    return {
        "id": player.id,
        "name": player.full_name,
        "collegeId": player.college_id,
        "position": player.position,
    }


def _raise_for_outcome(outcome: EvaluationOutcome) -> None:
    if outcome.status is OutcomeStatus.DENIED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": outcome.message,
                "code": "EVALUATION_ACCESS_DENIED",
                "reason": outcome.reason.value if outcome.reason else None,
            },
        )
    if outcome.status is OutcomeStatus.INVALID:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": outcome.message,
                "code": "EVALUATION_VALIDATION_ERROR",
                "errors": [error.as_dict() for error in outcome.errors],
                "totalErrors": len(outcome.errors),
            },
        )
    if outcome.status is OutcomeStatus.NOT_FOUND:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": outcome.message, "code": "EVALUATION_NOT_FOUND"},
        )
    if outcome.status is OutcomeStatus.SYSTEM_ERROR:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": outcome.message or "Failed to process player evaluation",
                "code": "EVALUATION_ERROR",
            },
        )


@router.post("/players/{player_id}/evaluation", status_code=status.HTTP_201_CREATED)
async def evaluate_player(
    player_id: str,
    payload: Any = Body(None),
    user_id: str = CoachIdentity,
    service: EvaluationService = Depends(_service),
):
    outcome = await service.submit(user_id, player_id, payload)
    _raise_for_outcome(outcome)
    record = outcome.record
    is_update = outcome.status is OutcomeStatus.NEW_VERSION
    return {
        "message": (
            "Player evaluation updated successfully"
            if is_update
            else "Player evaluation created successfully"
        ),
        "evaluation": evaluation_response(record),
        "player": player_summary(outcome.player),
        "metadata": {
            "version": record.version,
            "isUpdate": is_update,
            "previousVersion": outcome.previous_version,
            "evaluationDate": record.evaluation_date,
        },
    }


@router.get("/players/{player_id}/evaluation")
async def get_player_evaluation(
    player_id: str,
    user_id: str = CoachIdentity,
    service: EvaluationService = Depends(_service),
):
    outcome = await service.current(user_id, player_id)
    _raise_for_outcome(outcome)
    record = outcome.record
    return {
        "evaluation": evaluation_response(record),
        "player": player_summary(outcome.player),
        "metadata": {"version": record.version, "lastUpdated": record.evaluation_date},
    }


@router.get("/players/{player_id}/evaluations")
async def list_player_evaluations(
    player_id: str,
    user_id: str = CoachIdentity,
    service: EvaluationService = Depends(_service),
):
    outcome = await service.versions(user_id, player_id)
    _raise_for_outcome(outcome)
    return {
        "player": player_summary(outcome.player),
        "evaluations": [evaluation_response(record) for record in outcome.records],
        "totalVersions": len(outcome.records),
    }


@router.get("/evaluations")
async def get_evaluation_history(
    user_id: str = CoachIdentity,
    service: EvaluationService = Depends(_service),
):
    try:
        history = await service.history(user_id)
    except LeanCloudError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": "Failed to retrieve evaluation history",
                "code": "EVALUATION_HISTORY_ERROR",
            },
        ) from exc
    if history is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": "Coach profile not found", "code": "COACH_PROFILE_NOT_FOUND"},
        )
    return {
        "totalEvaluations": len(history.records),
        "uniquePlayers": len(history.by_player),
        "evaluationsByPlayer": [
            {
                "playerId": group.player_id,
                "player": player_summary(group.player),
                "evaluations": [evaluation_response(record) for record in group.evaluations],
            }
            for group in history.by_player
        ],
        "summary": {
            "currentEvaluations": history.current_count,
            "historicalVersions": history.historical_count,
        },
    }
