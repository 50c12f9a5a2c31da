"""Hue bridge REST control primitives."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from functools import wraps
from typing import Any, TypeVar

import httpx

from huemcp.lib.conversions import rgb_to_xy
from huemcp.lib.models import DEFAULT_TIMEOUT, Group, Light, Scene

CONNECT_ATTEMPTS = 3
CONNECT_RETRY_DELAY = 1.0

log = logging.getLogger("huemcp")

T = TypeVar("T")


class BridgeError(RuntimeError):
    """Raised when the bridge rejects a request or cannot be reached."""


def retry_async(
    *,
    attempts: int,
    delay_seconds: float,
    operation: str,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Coroutine[Any, Any, T]]]:
    """Retry async operations that raise exceptions."""
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    def decorator(
        func: Callable[..., Awaitable[T]],
    ) -> Callable[..., Coroutine[Any, Any, T]]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            last_error: Exception | None = None
            for attempt in range(1, attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as exc:
                    last_error = exc
                    if attempt == attempts:
                        break
                    log.warning(
                        "%s failed (attempt %d/%d): %s. Retrying in %.1fs...",
                        operation,
                        attempt,
                        attempts,
                        exc,
                        delay_seconds,
                    )
                    await asyncio.sleep(delay_seconds)

            assert last_error is not None
            raise RuntimeError(f"{operation} failed after {attempts} attempts.") from last_error

        return wrapper

    return decorator


def encode_state(state: dict[str, Any]) -> dict[str, Any]:
    """Translate a partial light state into the bridge's wire fields.

    ``rgb`` has no bridge counterpart and is sent as CIE ``xy``; every other
    key is passed through untouched.
    """
    body = dict(state)
    rgb = body.pop("rgb", None)
    if rgb is not None:
        body["xy"] = list(rgb_to_xy(*rgb))
    return body


def raise_for_bridge_errors(payload: Any) -> None:
    """The bridge answers HTTP 200 with a list of ``{"error": ...}`` items on failure."""
    if not isinstance(payload, list):
        return
    errors = [item["error"] for item in payload if isinstance(item, dict) and "error" in item]
    if errors:
        raise BridgeError(
            "; ".join(str(error.get("description", "unknown bridge error")) for error in errors)
        )


@dataclass
class HueBridge:
    client: httpx.AsyncClient
    host: str

    @classmethod
    async def connect(
        cls,
        host: str,
        username: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> HueBridge:
        log.debug("Connecting to bridge at %s...", host)
        client = httpx.AsyncClient(base_url=f"http://{host}/api/{username}", timeout=timeout)
        bridge = cls(client=client, host=host)
        try:
            await bridge.check_connection()
        except BaseException:
            await client.aclose()
            raise
        return bridge

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> HueBridge:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def request(self, method: str, path: str, body: dict[str, Any] | None = None) -> Any:
        log.debug("%s %s body=%s", method, path, body)
        try:
            response = await self.client.request(method, path, json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise BridgeError(f"Bridge returned HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            reason = str(exc) or exc.__class__.__name__
            raise BridgeError(f"Bridge request failed: {reason}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise BridgeError("Bridge returned invalid JSON") from exc
        log.debug("%s %s response=%s", method, path, payload)
        raise_for_bridge_errors(payload)
        return payload

    async def _get_resources(self, path: str) -> dict[str, Any]:
        payload = await self.request("GET", path)
        if not isinstance(payload, dict):
            raise BridgeError(f"Unexpected bridge response for {path}")
        return payload

    @retry_async(
        attempts=CONNECT_ATTEMPTS,
        delay_seconds=CONNECT_RETRY_DELAY,
        operation="Connecting to bridge",
    )
    async def check_connection(self) -> dict[str, Any]:
        config = await self._get_resources("/config")
        log.info(
            "Connected to bridge %s at %s (API %s)",
            config.get("name", "?"),
            self.host,
            config.get("apiversion", "?"),
        )
        return config

    async def get_all_lights(self) -> list[Light]:
        payload = await self._get_resources("/lights")
        return [Light.from_bridge(light_id, data) for light_id, data in payload.items()]

    async def get_all_groups(self) -> list[Group]:
        payload = await self._get_resources("/groups")
        return [Group.from_bridge(group_id, data) for group_id, data in payload.items()]

    async def get_all_scenes(self) -> list[Scene]:
        payload = await self._get_resources("/scenes")
        return [Scene.from_bridge(scene_id, data) for scene_id, data in payload.items()]

    async def set_light_state(self, light_id: str, state: dict[str, Any]) -> None:
        await self.request("PUT", f"/lights/{light_id}/state", encode_state(state))

    async def set_group_state(self, group_id: str, state: dict[str, Any]) -> None:
        await self.request("PUT", f"/groups/{group_id}/action", encode_state(state))

    async def activate_scene(self, scene_id: str) -> None:
        # Group 0 is the bridge's implicit "all lights" group.
        await self.request("PUT", "/groups/0/action", {"scene": scene_id})
