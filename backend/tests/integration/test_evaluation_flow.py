from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from app.clients.leancloud import LeanCloudClient
from app.main import app
from app.repositories.evaluation_repository import EVALUATION_CLASS

COACH = {"X-User-Id": "coach-user"}


@pytest.fixture(autouse=True)
def _route_lean_to_fake(monkeypatch, fake_lean):
    original = LeanCloudClient.from_settings.__func__

    def _from_settings(cls, settings, **kwargs):
        kwargs.setdefault("transport", httpx.MockTransport(fake_lean.handler))
        return original(cls, settings, **kwargs)

    monkeypatch.setattr(LeanCloudClient, "from_settings", classmethod(_from_settings))


@pytest_asyncio.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client


async def _activity(client) -> dict:
    response = await client.get("/api/njcaa-coach/settings", headers=COACH)
    assert response.status_code == 200
    return response.json()["activityStats"]


@pytest.mark.asyncio
async def test_first_evaluation_then_re_evaluation(client, valid_payload, fake_lean):
    url = "/api/njcaa-coach/players/player-male/evaluation"
    assert (await _activity(client))["totalEvaluations"] == 0

    first = await client.post(url, json=valid_payload(), headers=COACH)

    assert first.status_code == 201
    assert first.json()["evaluation"]["evaluationVersion"] == 1
    assert (await _activity(client))["totalEvaluations"] == 1

    second = await client.post(
        url,
        json=valid_payload(coachFinalComment="Improved a lot since the winter break camp."),
        headers=COACH,
    )

    assert second.status_code == 201
    assert second.json()["metadata"]["previousVersion"] == 1
    versions = (
        await client.get("/api/njcaa-coach/players/player-male/evaluations", headers=COACH)
    ).json()["evaluations"]
    assert [(item["evaluationVersion"], item["isCurrent"]) for item in versions] == [
        (1, False),
        (2, True),
    ]
    activity = await _activity(client)
    assert activity["totalEvaluations"] == 2
    assert activity["lastEvaluationDate"] == second.json()["metadata"]["evaluationDate"]
    assert len(fake_lean.rows(EVALUATION_CLASS)) == 2

    dashboard = (await client.get("/api/njcaa-coach/dashboard", headers=COACH)).json()
    status = {player["id"]: player["evaluationStatus"] for player in dashboard["players"]}
    assert status["player-male"]["evaluationVersion"] == 2
    assert "player-female" not in status


@pytest.mark.asyncio
async def test_denied_submissions_leave_no_trace(client, valid_payload, fake_lean):
    away = await client.post(
        "/api/njcaa-coach/players/player-away/evaluation", json=valid_payload(), headers=COACH
    )
    hidden = await client.post(
        "/api/njcaa-coach/players/player-hidden/evaluation", json=valid_payload(), headers=COACH
    )

    assert away.status_code == 403
    assert away.json()["detail"]["reason"] == "organization_mismatch"
    assert hidden.status_code == 403
    assert hidden.json()["detail"]["reason"] == "subject_not_visible"
    assert fake_lean.rows(EVALUATION_CLASS) == []
    assert (await _activity(client))["totalEvaluations"] == 0


@pytest.mark.asyncio
async def test_womens_coach_flow(client, valid_payload):
    headers = {"X-User-Id": "womens-coach-user"}

    dashboard = await client.get("/api/njcaa-coach/dashboard", headers=headers)
    allowed = await client.post(
        "/api/njcaa-coach/players/player-female/evaluation", json=valid_payload(), headers=headers
    )
    denied = await client.post(
        "/api/njcaa-coach/players/player-male/evaluation", json=valid_payload(), headers=headers
    )

    assert [player["id"] for player in dashboard.json()["players"]] == ["player-female"]
    assert allowed.status_code == 201
    assert denied.status_code == 403
    assert denied.json()["detail"]["reason"] == "category_mismatch"


@pytest.mark.asyncio
async def test_history_groups_by_player(client, valid_payload):
    for player_id in ["player-male", "player-male"]:
        await client.post(
            f"/api/njcaa-coach/players/{player_id}/evaluation", json=valid_payload(), headers=COACH
        )

    history = (await client.get("/api/njcaa-coach/evaluations", headers=COACH)).json()

    assert history["totalEvaluations"] == 2
    assert history["uniquePlayers"] == 1
    group = history["evaluationsByPlayer"][0]
    assert group["playerId"] == "player-male"
    assert [item["evaluationVersion"] for item in group["evaluations"]] == [2, 1]
