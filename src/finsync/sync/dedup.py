#!/usr/bin/env python3
"""
Request De-duplication

An identical request already in flight is shared rather than re-issued: callers
await the same future and receive the same result (or exception).
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def request_key(endpoint: str, params: Any = None) -> str:
    """Signature of a request; unserializable params fall back to the endpoint."""
    try:
        return f"{endpoint}:{json.dumps(params, sort_keys=True, default=str)}"
    except (TypeError, ValueError):
        return endpoint


class RequestDeduplicator:
    """In-flight request map: key -> shared future."""

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Future] = {}

    async def run(self, endpoint: str, params: Any, request_fn: Callable[[], Awaitable[T]]) -> T:
        """
        Execute request_fn unless an identical request is already running.

        Args:
            endpoint: Request type identifier
            params: Request parameters (part of the signature)
            request_fn: Coroutine factory performing the request

        Returns:
            The result of the (possibly shared) request
        """
        key = request_key(endpoint, params)
        pending = self._pending.get(key)
        if pending is not None:
            logger.debug(f"Joining in-flight request {key}")
            return await asyncio.shield(pending)

        future: asyncio.Future = asyncio.ensure_future(request_fn())
        self._pending[key] = future
        future.add_done_callback(lambda done: self._release(key, done))
        return await asyncio.shield(future)

    def _release(self, key: str, future: asyncio.Future) -> None:
        if self._pending.get(key) is future:
            del self._pending[key]

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def clear(self) -> None:
        self._pending.clear()
