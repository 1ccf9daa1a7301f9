from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger("app.telemetry")


def build_pair_attributes(
    coach_id: str, player_id: str, extra: dict[str, Any] | None = None
) -> dict[str, Any]:
    return {"coachId": coach_id, "playerId": player_id, **(extra or {})}


def _payload(kind: str, name: str, attributes: dict[str, Any] | None, **ids: Any) -> dict[str, Any]:
    return {"type": kind, "name": name, **ids, "attributes": attributes or {}}


def _emit(payload: dict[str, Any]) -> dict[str, Any]:
    logger.info(json.dumps(payload, sort_keys=True, default=str))
    return payload


def build_event(
    name: str,
    *,
    coach_id: str | None = None,
    player_id: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return _payload("event", name, attributes, coachId=coach_id, playerId=player_id)


def emit_event(
    name: str,
    *,
    coach_id: str | None = None,
    player_id: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return _emit(build_event(name, coach_id=coach_id, player_id=player_id, attributes=attributes))


def build_metric(
    name: str,
    value: float,
    *,
    coach_id: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return _payload("metric", name, attributes, value=value, coachId=coach_id)


def emit_metric(
    name: str,
    value: float,
    *,
    coach_id: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return _emit(build_metric(name, value, coach_id=coach_id, attributes=attributes))
