from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

import httpx

from booking_engine.application.exceptions import (
    ConflictError,
    EngineError,
    NetworkError,
    NotFoundError,
    StaleStateError,
    ValidationError,
)
from booking_engine.application.ports.remote_store import RemoteStorePort
from booking_engine.core.config import settings
from booking_engine.domain.entities.engagement import Engagement, EngagementRequest
from booking_engine.domain.entities.notification import NotificationEvent
from booking_engine.domain.entities.subject import BookableSubject
from booking_engine.infrastructure.remote.payloads import (
    deserialize_engagement,
    deserialize_notification,
    deserialize_subject,
    serialize_request,
)

T = TypeVar("T")


def _each(decode: Callable[[Any], T]) -> Callable[[Any], list[T]]:
    def decode_list(data: Any) -> list[T]:
        if data is None:
            return []
        if not isinstance(data, list):
            raise TypeError(f"expected a list, got {type(data).__name__}")
        return [decode(item) for item in data]

    return decode_list


class HttpRemoteStore(RemoteStorePort):
    def __init__(
        self,
        base_url: str | None = None,
        api_token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.REMOTE_STORE_BASE_URL or "").rstrip("/")
        self._api_token = api_token or settings.REMOTE_STORE_API_TOKEN
        if not self._base_url:
            raise ValueError("REMOTE_STORE_BASE_URL is required for the HTTP remote store")

        headers = {"Accept": "application/json"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout or settings.REMOTE_STORE_TIMEOUT_SECONDS,
            transport=transport,
        )
        self._logger = logging.getLogger(__name__)

    async def create_engagement(self, request: EngagementRequest, idempotency_key: str) -> Engagement:
        data = await self._request("POST", "/engagements", json=serialize_request(request), idempotency_key=idempotency_key)
        return self._parse("/engagements", deserialize_engagement, data)

    async def approve_engagement(self, engagement_id: str, idempotency_key: str) -> Engagement:
        return await self._engagement_action(engagement_id, "approve", idempotency_key)

    async def reject_engagement(self, engagement_id: str, idempotency_key: str) -> Engagement:
        return await self._engagement_action(engagement_id, "reject", idempotency_key)

    async def complete_engagement(self, engagement_id: str, idempotency_key: str) -> Engagement:
        return await self._engagement_action(engagement_id, "complete", idempotency_key)

    async def revert_engagement(self, engagement_id: str, idempotency_key: str) -> Engagement:
        return await self._engagement_action(engagement_id, "revert", idempotency_key)

    async def get_engagements(self, subject_id: str | None = None) -> list[Engagement]:
        params = {"subjectId": subject_id} if subject_id else None
        data = await self._request("GET", "/engagements", params=params)
        return self._parse("/engagements", _each(deserialize_engagement), data)

    async def get_subject(self, subject_id: str) -> BookableSubject:
        data = await self._request("GET", f"/subjects/{subject_id}")
        return self._parse(f"/subjects/{subject_id}", deserialize_subject, data)

    async def get_subjects(self) -> list[BookableSubject]:
        data = await self._request("GET", "/subjects")
        return self._parse("/subjects", _each(deserialize_subject), data)

    async def get_notifications(self) -> list[NotificationEvent]:
        data = await self._request("GET", "/notifications")
        if data is not None and not isinstance(data, list):
            self._logger.error("Remote store sent a malformed payload", extra={"action": "/notifications"})
            raise NetworkError("Remote store sent an unreadable response.")
        events: list[NotificationEvent] = []
        for item in data or []:
            try:
                events.append(deserialize_notification(item))
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                self._logger.warning("Skipping unreadable notification", extra={"reason": str(e)})
        return events

    async def mark_notification_read(self, notification_id: str, idempotency_key: str) -> None:
        await self._request("POST", f"/notifications/{notification_id}/read", idempotency_key=idempotency_key)

    async def clear_notification(self, notification_id: str, idempotency_key: str) -> None:
        await self._request("DELETE", f"/notifications/{notification_id}", idempotency_key=idempotency_key)

    async def clear_all_notifications(self, idempotency_key: str) -> None:
        await self._request("DELETE", "/notifications", idempotency_key=idempotency_key)

    async def close(self) -> None:
        await self._client.aclose()

    async def _engagement_action(self, engagement_id: str, action: str, idempotency_key: str) -> Engagement:
        data = await self._request("POST", f"/engagements/{engagement_id}/{action}", idempotency_key=idempotency_key)
        return self._parse(f"/engagements/{engagement_id}/{action}", deserialize_engagement, data)

    async def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> Any:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        try:
            resp = await self._client.request(method, path, json=json, params=params, headers=headers)
        except httpx.HTTPError as e:
            self._logger.warning(
                "Remote store unreachable",
                extra={"action": f"{method} {path}", "reason": type(e).__name__},
            )
            raise NetworkError(f"Remote store unreachable: {type(e).__name__}") from e

        if resp.status_code >= 400:
            raise self._error_for(resp, method, path)
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            self._logger.error(
                "Remote store sent a non-JSON body",
                extra={"action": f"{method} {path}", "status": resp.status_code},
            )
            raise NetworkError("Remote store sent an unreadable response.") from e

    def _parse(self, path: str, decode: Callable[[Any], T], data: Any) -> T:
        try:
            return decode(data)
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            self._logger.error("Remote store sent a malformed payload", extra={"action": path, "reason": repr(e)})
            raise NetworkError("Remote store sent an unreadable response.") from e

    def _error_for(self, resp: httpx.Response, method: str, path: str) -> EngineError:
        try:
            error = resp.json().get("error", {})
            code = error.get("code")
            message = error.get("message")
        except (ValueError, AttributeError):
            code = None
            message = resp.text or None

        self._logger.error(
            "Remote store rejected request",
            extra={"action": f"{method} {path}", "status": resp.status_code, "reason": code},
        )
        if resp.status_code == 404:
            return NotFoundError(message)
        if resp.status_code == 409:
            if code == "stale_state":
                return StaleStateError(message)
            return ConflictError(message)
        if resp.status_code in (400, 422):
            return ValidationError(message)
        if resp.status_code >= 500 or resp.status_code == 429:
            return NetworkError(message or f"Remote store returned {resp.status_code}")
        return EngineError(message)
