from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.clients.leancloud import LeanCloudClient, LeanCloudError

COACH_CLASS = "NJCAACoachProfile"
PLAYER_CLASS = "PlayerProfile"
QUERY_LIMIT = 1000


@dataclass(frozen=True)
class CoachProfileRecord:
    id: str
    user_id: str
    college_id: str
    team_sport: str
    position: str | None
    division: str | None
    phone_number: str | None
    first_name: str | None
    last_name: str | None
    created_at: str | None


@dataclass(frozen=True)
class PlayerProfileRecord:
    id: str
    user_id: str
    college_id: str
    gender: str
    is_profile_visible: bool
    is_active: bool
    first_name: str | None
    last_name: str | None
    position: str | None
    created_at: str | None

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


def _as_id(raw: Any) -> str:
    if isinstance(raw, dict):
        return str(raw.get("objectId", ""))
    if raw is None:
        return ""
    return str(raw)


def _college_match(college_id: str) -> Any:
    # Records map collegeId to text; rows may still store the integer form.
    if college_id.isdigit():
        return {"$in": [college_id, int(college_id)]}
    return college_id


def _coach_from_lc(payload: dict[str, Any]) -> CoachProfileRecord:
    return CoachProfileRecord(
        id=payload["objectId"],
        user_id=_as_id(payload.get("userId")),
        college_id=_as_id(payload.get("collegeId")),
        team_sport=payload.get("teamSport", ""),
        position=payload.get("position"),
        division=payload.get("division"),
        phone_number=payload.get("phoneNumber"),
        first_name=payload.get("firstName"),
        last_name=payload.get("lastName"),
        created_at=payload.get("createdAt"),
    )


def _player_from_lc(payload: dict[str, Any]) -> PlayerProfileRecord:
    return PlayerProfileRecord(
        id=payload["objectId"],
        user_id=_as_id(payload.get("userId")),
        college_id=_as_id(payload.get("collegeId")),
        gender=payload.get("gender", ""),
        is_profile_visible=bool(payload.get("isProfileVisible", False)),
        is_active=bool(payload.get("isActive", False)),
        first_name=payload.get("firstName"),
        last_name=payload.get("lastName"),
        position=payload.get("position"),
        created_at=payload.get("createdAt"),
    )


class ProfileRepository:
    """Read access to coach and player profiles.

    Profiles are owned by registration; the only write here is the coach's
    own settings update.
    """

    def __init__(self, client: LeanCloudClient) -> None:
        self._client = client

    async def get_coach_by_user(self, user_id: str) -> CoachProfileRecord | None:
        response = await self._client.query(COACH_CLASS, {"userId": user_id}, limit=1)
        results = response.get("results", [])
        if not results:
            return None
        return _coach_from_lc(results[0])

    async def get_player(self, player_id: str) -> PlayerProfileRecord | None:
        try:
            payload = await self._client.get_json(f"/1.1/classes/{PLAYER_CLASS}/{player_id}")
        except LeanCloudError as exc:
            if exc.is_not_found:
                return None
            raise
        return _player_from_lc(payload)

    async def get_players(self, player_ids: list[str]) -> dict[str, PlayerProfileRecord]:
        if not player_ids:
            return {}
        response = await self._client.query(
            PLAYER_CLASS, {"objectId": {"$in": sorted(set(player_ids))}}, limit=QUERY_LIMIT
        )
        players = [_player_from_lc(item) for item in response.get("results", [])]
        return {player.id: player for player in players}

    async def list_players(self, *, college_id: str, gender: str) -> list[PlayerProfileRecord]:
        where = {
            "collegeId": _college_match(college_id),
            "gender": gender,
            "isProfileVisible": True,
            "isActive": True,
        }
        response = await self._client.query(
            PLAYER_CLASS, where, order="-createdAt", limit=QUERY_LIMIT
        )
        return [_player_from_lc(item) for item in response.get("results", [])]

    async def update_coach(self, coach_id: str, payload: dict[str, Any]) -> CoachProfileRecord | None:
        try:
            await self._client.put_json(f"/1.1/classes/{COACH_CLASS}/{coach_id}", payload)
            current = await self._client.get_json(f"/1.1/classes/{COACH_CLASS}/{coach_id}")
        except LeanCloudError as exc:
            if exc.is_not_found:
                return None
            raise
        return _coach_from_lc(current)
