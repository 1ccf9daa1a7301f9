from __future__ import annotations

import json
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest
import pytest_asyncio

from app.clients.leancloud import LeanCloudClient
from app.config import Settings

LEAN_ENV = {
    "LEAN_APP_ID": "app",
    "LEAN_APP_KEY": "key",
    "LEAN_MASTER_KEY": "master",
    "LEAN_SERVER_URL": "https://api.leancloud.cn",
}

UNIQUE_FIELDS = {"PlayerEvaluation": ("pairVersionKey",)}


class FakeLeanCloud:
    """In-memory stand-in for the LeanCloud REST classes API."""

    def __init__(self) -> None:
        self.objects: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.requests: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, str], int] = {}
        self._seq = 0

    def _timestamp(self) -> str:
        moment = datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=self._seq)
        return moment.strftime("%Y-%m-%dT%H:%M:%S.000Z")

    def add(self, class_name: str, **fields: Any) -> dict[str, Any]:
        self._seq += 1
        object_id = fields.pop("objectId", f"{class_name.lower()}-{self._seq}")
        record = {"objectId": object_id, "createdAt": self._timestamp(), **fields}
        self.objects[class_name][object_id] = record
        return record

    def fail(self, method: str, class_name: str, status_code: int = 503) -> None:
        self.failures[(method, class_name)] = status_code

    def rows(self, class_name: str) -> list[dict[str, Any]]:
        return list(self.objects[class_name].values())

    def posts(self, class_name: str) -> int:
        return sum(
            1
            for method, path in self.requests
            if method == "POST" and path == f"/1.1/classes/{class_name}"
        )

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        parts = request.url.path.strip("/").split("/")
        if len(parts) < 3 or parts[1] != "classes":
            return httpx.Response(200, json={})
        class_name = parts[2]
        failure = self.failures.get((request.method, class_name))
        if failure:
            return httpx.Response(failure, json={"code": 1, "error": "unavailable"})
        table = self.objects[class_name]

        if len(parts) == 4:
            record = table.get(parts[3])
            if record is None:
                return httpx.Response(404, json={"code": 101, "error": "Object not found."})
            if request.method == "GET":
                return httpx.Response(200, json=record)
            if request.method == "PUT":
                record.update(json.loads(request.content.decode() or "{}"))
                record["updatedAt"] = self._timestamp()
                return httpx.Response(200, json={"updatedAt": record["updatedAt"]})
            if request.method == "DELETE":
                del table[parts[3]]
                return httpx.Response(200, json={})

        if request.method == "POST":
            payload = json.loads(request.content.decode() or "{}")
            for field in UNIQUE_FIELDS.get(class_name, ()):
                value = payload.get(field)
                if value is not None and any(row.get(field) == value for row in table.values()):
                    return httpx.Response(
                        400,
                        json={
                            "code": 137,
                            "error": "A unique field was given a value that is already taken.",
                        },
                    )
            record = self.add(class_name, **payload)
            return httpx.Response(
                201, json={"objectId": record["objectId"], "createdAt": record["createdAt"]}
            )

        params = request.url.params
        where = json.loads(params.get("where", "{}"))
        results = [dict(row) for row in table.values() if _matches(row, where)]
        for key in reversed((params.get("order") or "").split(",")):
            if not key:
                continue
            name = key.lstrip("-")
            results.sort(
                key=lambda row: (row.get(name) is not None, row.get(name) or 0),
                reverse=key.startswith("-"),
            )
        body: dict[str, Any] = {"results": results[: int(params.get("limit", 100))]}
        if params.get("count"):
            body["count"] = len(results)
        return httpx.Response(200, json=body)


def _matches(row: dict[str, Any], where: dict[str, Any]) -> bool:
    for field, expected in where.items():
        value = row.get(field)
        if isinstance(expected, dict) and "$in" in expected:
            if value not in expected["$in"]:
                return False
        elif value != expected:
            return False
    return True


@pytest.fixture(autouse=True)
def _set_env(monkeypatch):
    for name, value in LEAN_ENV.items():
        monkeypatch.setenv(name, value)
    for name in ("API_ACCESS_TOKEN", "GRADUATION_YEAR_SPAN", "EVALUATION_WRITE_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        lean_app_id="app",
        lean_app_key="key",
        lean_master_key="master",
        lean_server_url="https://api.leancloud.cn",
        api_access_token=None,
        cors_origins=("http://localhost:3000",),
        graduation_year_span=6,
        evaluation_write_attempts=5,
    )


@pytest.fixture
def fake_lean() -> FakeLeanCloud:
    fake = FakeLeanCloud()
    fake.add(
        "NJCAACoachProfile",
        objectId="coach-1",
        userId="coach-user",
        collegeId="college-7",
        teamSport="mens_soccer",
        position="head_coach",
        division="njcaa_d1",
        phoneNumber="+1 555 010 2000",
        firstName="Sam",
        lastName="Rivera",
    )
    fake.add(
        "NJCAACoachProfile",
        objectId="coach-2",
        userId="womens-coach-user",
        collegeId="college-7",
        teamSport="womens_soccer",
        position="assistant_coach",
        division="njcaa_d1",
        phoneNumber="+1 555 010 3000",
    )
    for object_id, college, gender, visible, active in [
        ("player-male", "college-7", "male", True, True),
        ("player-female", "college-7", "female", True, True),
        ("player-away", "college-9", "male", True, True),
        ("player-hidden", "college-7", "male", False, True),
        ("player-inactive", "college-7", "male", True, False),
    ]:
        fake.add(
            "PlayerProfile",
            objectId=object_id,
            userId=f"user-{object_id}",
            collegeId=college,
            gender=gender,
            isProfileVisible=visible,
            isActive=active,
            firstName="Alex",
            lastName=object_id.split("-")[1].title(),
            position="midfielder",
        )
    return fake


@pytest_asyncio.fixture
async def lean_client(fake_lean):
    client = LeanCloudClient(
        app_id="app",
        app_key="key",
        master_key="master",
        server_url="https://api.leancloud.cn",
        transport=httpx.MockTransport(fake_lean.handler),
    )
    yield client
    await client.close()


@pytest.fixture
def graduation_year() -> int:
    return datetime.now(timezone.utc).year + 1


@pytest.fixture
def valid_payload(graduation_year):
    def _build(**overrides: Any) -> dict[str, Any]:
        payload = {
            "availableToTransfer": True,
            "expectedGraduationYear": graduation_year,
            "roleInTeam": "Starting central midfielder",
            "performanceLevel": "Consistently one of the best players on the pitch",
            "playerStrengths": "Vision, passing range and work rate",
            "improvementAreas": "Needs to improve aerial duels and left foot",
            "mentality": "Competitive and composed under pressure",
            "coachability": "Takes feedback well and applies it quickly",
            "technique": "Clean first touch and accurate long passing",
            "physique": "Good stamina, average top speed",
            "coachFinalComment": "Ready to contribute at the next level within a season.",
        }
        payload.update(overrides)
        return payload

    return _build
