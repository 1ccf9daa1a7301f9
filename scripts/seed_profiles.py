from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

PROJECT_ROOT = Path(__file__).resolve().parents[1]
BACKEND_ROOT = PROJECT_ROOT / "backend"
sys.path.append(str(BACKEND_ROOT))

from app.clients.leancloud import LeanCloudClient, LeanCloudError
from app.config import SettingsError, load_settings
from app.repositories.evaluation_repository import EVALUATION_CLASS
from app.repositories.profile_repository import COACH_CLASS, PLAYER_CLASS
from app.services.eligibility import TEAM_SPORT_GENDER


def _read_json(path: Path) -> list[dict[str, Any]]:
    try:
        data = json.loads(path.read_text())
    except FileNotFoundError as exc:
        raise ValueError(f"File not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, list):
        raise ValueError(f"Expected a list in {path}")
    if not all(isinstance(item, dict) for item in data):
        raise ValueError(f"Expected a list of objects in {path}")
    return data


def _require_fields(item: dict[str, Any], fields: list[str], context: str) -> None:
    missing = [field for field in fields if item.get(field) in (None, "")]
    if missing:
        raise ValueError(f"{context} missing required fields: {', '.join(missing)}")


def _check_college_id(item: dict[str, Any], context: str) -> None:
    college_id = item["collegeId"]
    if isinstance(college_id, bool) or not isinstance(college_id, (str, int)):
        raise ValueError(f"{context} {item['userId']} collegeId must be text or a whole number")


def _validate_coach(coach: dict[str, Any]) -> None:
    _require_fields(coach, ["userId", "collegeId", "teamSport", "position", "division"], "Coach")
    _check_college_id(coach, "Coach")
    if coach["teamSport"] not in TEAM_SPORT_GENDER:
        raise ValueError(
            f"Coach {coach['userId']} has unsupported teamSport {coach['teamSport']!r}"
        )


def _validate_player(player: dict[str, Any]) -> None:
    _require_fields(player, ["userId", "collegeId", "gender", "firstName", "lastName"], "Player")
    _check_college_id(player, "Player")
    if player["gender"] not in set(TEAM_SPORT_GENDER.values()):
        raise ValueError(f"Player {player['userId']} has unsupported gender {player['gender']!r}")


async def _ensure_class(client: LeanCloudClient, class_name: str) -> None:
    try:
        await client.post_json(f"/1.1/schemas/{class_name}", {"className": class_name})
    except LeanCloudError as exc:
        body = exc.body or ""
        if "exists" in body.lower():
            return
        if exc.status_code in {400, 404}:
            return
        raise


async def _upsert_by_user(client: LeanCloudClient, class_name: str, payload: dict[str, Any]) -> str:
    response = await client.query(class_name, {"userId": payload["userId"]}, limit=1)
    results = response.get("results", [])
    if results:
        object_id = results[0]["objectId"]
        await client.put_json(f"/1.1/classes/{class_name}/{object_id}", payload)
        return object_id
    created = await client.post_json(f"/1.1/classes/{class_name}", payload)
    return created["objectId"]


async def _run(coaches_path: Path, players_path: Path) -> int:
    coaches = _read_json(coaches_path)
    players = _read_json(players_path)

    for coach in coaches:
        _validate_coach(coach)
    for player in players:
        _validate_player(player)

    try:
        settings = load_settings()
    except SettingsError as exc:
        raise ValueError(str(exc)) from exc

    client = LeanCloudClient.from_settings(settings)
    try:
        for class_name in (COACH_CLASS, PLAYER_CLASS, EVALUATION_CLASS):
            await _ensure_class(client, class_name)
        for coach in coaches:
            await _upsert_by_user(client, COACH_CLASS, coach)
        for player in players:
            payload = {"isProfileVisible": True, "isActive": True, **player}
            await _upsert_by_user(client, PLAYER_CLASS, payload)
    finally:
        await client.close()

    print(f"Seed complete: {len(coaches)} coaches, {len(players)} players")
    print(f"Make sure {EVALUATION_CLASS}.pairVersionKey has a unique index")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed LeanCloud coach and player profiles")
    parser.add_argument("--coaches", required=True, type=Path)
    parser.add_argument("--players", required=True, type=Path)
    args = parser.parse_args()

    try:
        return asyncio.run(_run(args.coaches, args.players))
    except Exception as exc:
        print(f"Seed failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
