from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from app.config import Settings

OBJECT_NOT_FOUND = 101
DUPLICATE_VALUE = 137

# POST creates objects; retrying one after an ambiguous failure could write twice.
IDEMPOTENT_METHODS = frozenset({"GET", "PUT", "DELETE", "HEAD"})


@dataclass(frozen=True)
class LeanCloudError(Exception):
    message: str
    status_code: int | None = None
    body: str | None = None

    def __str__(self) -> str:
        return self.message

    @property
    def code(self) -> int | None:
        if not self.body:
            return None
        try:
            payload = json.loads(self.body)
        except json.JSONDecodeError:
            return None
        if not isinstance(payload, dict):
            return None
        code = payload.get("code")
        return code if isinstance(code, int) else None

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404 or self.code == OBJECT_NOT_FOUND

    @property
    def is_duplicate(self) -> bool:
        return self.code == DUPLICATE_VALUE


class LeanCloudClient:
    def __init__(
        self,
        *,
        app_id: str,
        app_key: str,
        master_key: str,
        server_url: str,
        timeout: float = 10.0,
        retries: int = 2,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._retries = retries
        self._client = httpx.AsyncClient(
            base_url=server_url,
            timeout=timeout,
            transport=transport,
            headers={
                "X-LC-Id": app_id,
                "X-LC-Key": f"{master_key},master",
                "Accept": "application/json",
            },
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> LeanCloudClient:
        return cls(
            app_id=settings.lean_app_id,
            app_key=settings.lean_app_key,
            master_key=settings.lean_master_key,
            server_url=settings.lean_server_url,
            **kwargs,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        attempts = self._retries + 1 if method.upper() in IDEMPOTENT_METHODS else 1
        last_error: Exception | None = None
        for _ in range(attempts):
            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.RequestError as exc:
                last_error = exc
            else:
                if response.status_code >= 500:
                    last_error = LeanCloudError(
                        f"LeanCloud error {response.status_code}",
                        status_code=response.status_code,
                        body=response.text,
                    )
                else:
                    return response
        if isinstance(last_error, LeanCloudError):
            raise last_error
        raise LeanCloudError("LeanCloud request failed") from last_error

    async def request_json(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._request(method, path, **kwargs)
        if not response.is_success:
            raise LeanCloudError(
                f"LeanCloud error {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.text:
            return {}
        return response.json()

    async def get_json(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self.request_json("GET", path, **kwargs)

    async def post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.request_json("POST", path, json=payload)

    async def put_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.request_json("PUT", path, json=payload)

    async def query(
        self,
        class_name: str,
        where: dict[str, Any] | None = None,
        *,
        order: str | None = None,
        limit: int | None = None,
        count: bool = False,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if where:
            params["where"] = json.dumps(where)
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        if count:
            params["count"] = 1
        try:
            return await self.get_json(f"/1.1/classes/{class_name}", params=params)
        except LeanCloudError as exc:
            # A class with no rows yet does not exist on the server.
            if exc.status_code == 404 and exc.code == OBJECT_NOT_FOUND:
                return {"results": [], "count": 0} if count else {"results": []}
            raise
