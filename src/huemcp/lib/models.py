"""Data models for the Hue command server."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class Config:
    bridge_ip: str
    username: str = field(repr=False)
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_TIMEOUT
    sequential: bool = False
    allow_overlap: bool = False


class CommandType(StrEnum):
    get_lights = enum.auto()
    get_groups = enum.auto()
    get_scenes = enum.auto()
    set_color = enum.auto()
    set_brightness = enum.auto()
    set_effect = enum.auto()
    set_temperature = enum.auto()
    activate_scene = enum.auto()
    set_group_state = enum.auto()
    turn_off = enum.auto()
    flash = enum.auto()
    disco = enum.auto()
    stop_effect = enum.auto()


class ResponseType(StrEnum):
    hello = enum.auto()
    lights_list = enum.auto()
    groups_list = enum.auto()
    scenes_list = enum.auto()
    success = enum.auto()
    error = enum.auto()


@dataclass(frozen=True)
class Light:
    id: str
    name: str
    state: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_bridge(cls, light_id: str, data: dict[str, Any]) -> Light:
        return cls(id=str(light_id), name=data.get("name", ""), state=dict(data.get("state", {})))

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "state": self.state}


@dataclass(frozen=True)
class Group:
    id: str
    name: str
    lights: list[str] = field(default_factory=list)
    state: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_bridge(cls, group_id: str, data: dict[str, Any]) -> Group:
        """Merge the last applied ``action`` with the ``all_on``/``any_on`` summary."""
        state = dict(data.get("action", {}))
        state.update(data.get("state", {}))
        return cls(
            id=str(group_id),
            name=data.get("name", ""),
            lights=[str(light_id) for light_id in data.get("lights", [])],
            state=state,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "lights": self.lights, "state": self.state}


@dataclass(frozen=True)
class Scene:
    id: str
    name: str
    lights: list[str] = field(default_factory=list)

    @classmethod
    def from_bridge(cls, scene_id: str, data: dict[str, Any]) -> Scene:
        return cls(
            id=str(scene_id),
            name=data.get("name", ""),
            lights=[str(light_id) for light_id in data.get("lights", [])],
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "lights": self.lights}


def _as_id(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, str)):
        text = str(value)
        return text or None
    return None


@dataclass(frozen=True)
class Command:
    """A decoded client request.

    Field values are taken from the wire as-is; range and shape checks happen
    in the interpreter so that every failure becomes an ``error`` response.
    """

    type: str
    light_id: str | None = None
    group: str | None = None
    color: Any = None
    brightness: Any = None
    effect_type: Any = None
    temperature: Any = None
    scene: str | None = None
    times: Any = None
    duration: Any = None
    speed: Any = None
    transition_time: Any = None
    request_id: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Command:
        command_type = data.get("type")
        return cls(
            type=command_type if isinstance(command_type, str) else "",
            light_id=_as_id(data.get("lightId")),
            group=_as_id(data.get("group")),
            color=data.get("color"),
            brightness=data.get("brightness"),
            effect_type=data.get("effectType"),
            temperature=data.get("temperature"),
            scene=_as_id(data.get("scene")),
            times=data.get("times"),
            duration=data.get("duration"),
            speed=data.get("speed"),
            transition_time=data.get("transitionTime"),
            request_id=data.get("id"),
        )


def success_response() -> dict[str, Any]:
    return {"type": ResponseType.success.value, "success": True}


def error_response(message: str) -> dict[str, Any]:
    return {"type": ResponseType.error.value, "error": message}


def hello_response(version: str, capabilities: list[str]) -> dict[str, Any]:
    return {
        "type": ResponseType.hello.value,
        "version": version,
        "capabilities": list(capabilities),
    }
