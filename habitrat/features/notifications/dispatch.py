"""
habitrat/features/notifications/dispatch.py

Push dispatch collaborator.

Best effort: a chunk the transport rejects is logged and reported back as
not delivered. Nothing here retries.
"""
from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

import httpx

from habitrat.core.config import settings
from habitrat.core.errors import DispatchError
from habitrat.core.logging import log_event
from habitrat.models.notification import PushMessage


class PushDispatcher(Protocol):
    def send(self, messages: Sequence[PushMessage]) -> List[bool]:
        """Return one flag per message: True when its chunk was accepted."""
        ...


def _chunks(items: Sequence[PushMessage], size: int):
    for i in range(0, len(items), size):
        yield items[i:i + size]


class ExpoPushDispatcher:
    """Posts messages to the Expo push endpoint, at most batch_size per request."""

    def __init__(
        self,
        url: Optional[str] = None,
        access_token: Optional[str] = None,
        batch_size: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url or settings.EXPO_PUSH_URL
        self.access_token = access_token if access_token is not None else settings.EXPO_ACCESS_TOKEN
        self.batch_size = max(1, batch_size or settings.PUSH_BATCH_SIZE)
        self.timeout = timeout or settings.PUSH_TIMEOUT_SECONDS
        self.transport = transport

    def _headers(self) -> dict:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def _post_chunk(self, client: httpx.Client, chunk: Sequence[PushMessage]) -> None:
        payload = [m.model_dump() for m in chunk]
        try:
            response = client.post(self.url, headers=self._headers(), json=payload)
        except httpx.HTTPError as e:
            raise DispatchError(f"push transport error: {e}") from e
        if response.status_code >= 300:
            raise DispatchError(f"push rejected: {response.status_code} {response.text[:200]}")

    def send(self, messages: Sequence[PushMessage]) -> List[bool]:
        accepted: List[bool] = []
        if not messages:
            return accepted

        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            for index, chunk in enumerate(_chunks(messages, self.batch_size)):
                try:
                    self._post_chunk(client, chunk)
                    accepted.extend([True] * len(chunk))
                except DispatchError as e:
                    log_event(
                        "error",
                        "push chunk failed",
                        job="notifications",
                        error_code=e.code,
                        extra={"chunk": index, "size": len(chunk), "error": e.message},
                    )
                    accepted.extend([False] * len(chunk))
        return accepted
