"""Validate decoded commands and run them against the bridge."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from huemcp.lib.bridge import HueBridge
from huemcp.lib.conversions import (
    MAX_BRI,
    MAX_KELVIN,
    MIN_KELVIN,
    brightness_to_bri,
    is_number,
    is_rgb,
    kelvin_to_mired,
    ms_to_transitiontime,
)
from huemcp.lib.effects import (
    DEFAULT_DISCO_DURATION,
    DEFAULT_DISCO_SPEED_MS,
    DEFAULT_FLASH_TIMES,
    EffectEngine,
)
from huemcp.lib.models import (
    Command,
    CommandType,
    Light,
    ResponseType,
    error_response,
    success_response,
)

UNKNOWN_COMMAND = "Unknown command"

log = logging.getLogger("huemcp")

Handler = Callable[[Command], Awaitable[dict[str, Any]]]


class CommandError(ValueError):
    """Raised when a command is missing a field or carries an unusable value."""


def require(present: bool, message: str) -> None:
    if not present:
        raise CommandError(message)


def check_color(value: Any) -> list[int]:
    if not is_rgb(value):
        raise CommandError("color must be three integers between 0 and 255")
    return list(value)


def check_range(name: str, value: Any, low: float, high: float) -> float:
    if not is_number(value) or not low <= value <= high:
        raise CommandError(f"{name} must be a number between {low:g} and {high:g}")
    return value


def check_positive(name: str, value: Any) -> float:
    if not is_number(value) or value <= 0:
        raise CommandError(f"{name} must be a positive number")
    return value


def check_times(value: Any) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise CommandError("times must be a positive integer")
    return value


def add_transition(state: dict[str, Any], command: Command) -> dict[str, Any]:
    if command.transition_time is not None:
        if not is_number(command.transition_time) or command.transition_time < 0:
            raise CommandError("transitionTime must be a non-negative number")
        state["transitiontime"] = ms_to_transitiontime(command.transition_time)
    return state


class CommandInterpreter:
    """Map commands to bridge calls and build the response for each.

    ``lights`` is the snapshot taken at startup; ``get_lights`` serves it as-is.
    """

    def __init__(self, bridge: HueBridge, lights: list[Light], effects: EffectEngine) -> None:
        self.bridge = bridge
        self.lights = list(lights)
        self.effects = effects
        self._handlers: dict[CommandType, tuple[Handler, str]] = {
            CommandType.get_lights: (self.get_lights, "Failed to get lights"),
            CommandType.get_groups: (self.get_groups, "Failed to get groups"),
            CommandType.get_scenes: (self.get_scenes, "Failed to get scenes"),
            CommandType.set_color: (self.set_color, "Failed to set light color"),
            CommandType.set_brightness: (self.set_brightness, "Failed to set brightness"),
            CommandType.set_effect: (self.set_effect, "Failed to set effect"),
            CommandType.set_temperature: (self.set_temperature, "Failed to set color temperature"),
            CommandType.activate_scene: (self.activate_scene, "Failed to activate scene"),
            CommandType.set_group_state: (self.set_group_state, "Failed to set group state"),
            CommandType.turn_off: (self.turn_off, "Failed to turn off light"),
            CommandType.flash: (self.flash, "Failed to flash light"),
            CommandType.disco: (self.disco, "Failed to start disco"),
            CommandType.stop_effect: (self.stop_effect, "Failed to stop effect"),
        }

    async def execute(self, command: Command) -> dict[str, Any]:
        try:
            command_type = CommandType(command.type)
        except ValueError:
            log.debug("Unknown command type=%r", command.type)
            return error_response(UNKNOWN_COMMAND)

        handler, failure = self._handlers[command_type]
        log.debug("Executing %s", command)
        try:
            return await handler(command)
        except CommandError as exc:
            log.debug("Rejected %s: %s", command_type, exc)
            return error_response(str(exc))
        except Exception as exc:
            log.warning("%s failed: %s", command_type, exc)
            return error_response(str(exc) or failure)

    async def get_lights(self, command: Command) -> dict[str, Any]:
        return {
            "type": ResponseType.lights_list.value,
            "lights": [light.to_dict() for light in self.lights],
        }

    async def get_groups(self, command: Command) -> dict[str, Any]:
        groups = await self.bridge.get_all_groups()
        return {
            "type": ResponseType.groups_list.value,
            "groups": [group.to_dict() for group in groups],
        }

    async def get_scenes(self, command: Command) -> dict[str, Any]:
        scenes = await self.bridge.get_all_scenes()
        return {
            "type": ResponseType.scenes_list.value,
            "scenes": [scene.to_dict() for scene in scenes],
        }

    async def set_color(self, command: Command) -> dict[str, Any]:
        """Turn the light on at full brightness in ``color``.

        ``[0, 0, 0]`` has no chromaticity and shows as D65 white; use ``turn_off`` for dark.
        """
        require(
            command.light_id is not None and command.color is not None,
            "Missing lightId or color",
        )
        state = {"on": True, "bri": MAX_BRI, "rgb": check_color(command.color)}
        await self.bridge.set_light_state(command.light_id, add_transition(state, command))
        return success_response()

    async def set_brightness(self, command: Command) -> dict[str, Any]:
        require(
            command.light_id is not None and command.brightness is not None,
            "Missing lightId or brightness",
        )
        brightness = check_range("brightness", command.brightness, 0, 100)
        state = {"on": True, "bri": brightness_to_bri(brightness)}
        await self.bridge.set_light_state(command.light_id, add_transition(state, command))
        return success_response()

    async def set_effect(self, command: Command) -> dict[str, Any]:
        require(
            command.light_id is not None and command.effect_type is not None,
            "Missing lightId or effectType",
        )
        if not isinstance(command.effect_type, str):
            raise CommandError("effectType must be a string")
        await self.bridge.set_light_state(command.light_id, {"effect": command.effect_type})
        return success_response()

    async def set_temperature(self, command: Command) -> dict[str, Any]:
        require(
            command.light_id is not None and command.temperature is not None,
            "Missing lightId or temperature",
        )
        kelvin = check_range("temperature", command.temperature, MIN_KELVIN, MAX_KELVIN)
        state = {"on": True, "ct": kelvin_to_mired(kelvin)}
        await self.bridge.set_light_state(command.light_id, add_transition(state, command))
        return success_response()

    async def activate_scene(self, command: Command) -> dict[str, Any]:
        require(command.scene is not None, "Missing scene")
        await self.bridge.activate_scene(command.scene)
        return success_response()

    async def set_group_state(self, command: Command) -> dict[str, Any]:
        require(command.group is not None, "Missing group")
        state: dict[str, Any] = {}
        if command.color is not None:
            state["rgb"] = check_color(command.color)
        if command.brightness is not None:
            state["bri"] = brightness_to_bri(
                check_range("brightness", command.brightness, 0, 100)
            )
        if command.temperature is not None:
            state["ct"] = kelvin_to_mired(
                check_range("temperature", command.temperature, MIN_KELVIN, MAX_KELVIN)
            )
        if command.effect_type is not None:
            if not isinstance(command.effect_type, str):
                raise CommandError("effectType must be a string")
            state["effect"] = command.effect_type
        require(bool(state), "Missing color, brightness, temperature or effectType")
        await self.bridge.set_group_state(command.group, add_transition(state, command))
        return success_response()

    async def turn_off(self, command: Command) -> dict[str, Any]:
        require(command.light_id is not None, "Missing lightId")
        await self.bridge.set_light_state(command.light_id, {"on": False})
        return success_response()

    async def flash(self, command: Command) -> dict[str, Any]:
        require(
            command.light_id is not None and command.color is not None,
            "Missing lightId or color",
        )
        color = check_color(command.color)
        times = DEFAULT_FLASH_TIMES if command.times is None else check_times(command.times)
        await self.effects.flash(command.light_id, color, times)
        return success_response()

    async def disco(self, command: Command) -> dict[str, Any]:
        require(command.light_id is not None, "Missing lightId")
        duration = (
            DEFAULT_DISCO_DURATION
            if command.duration is None
            else check_positive("duration", command.duration)
        )
        speed = (
            DEFAULT_DISCO_SPEED_MS
            if command.speed is None
            else check_positive("speed", command.speed)
        )
        self.effects.start_disco(command.light_id, duration=duration, speed_ms=speed)
        return success_response()

    async def stop_effect(self, command: Command) -> dict[str, Any]:
        require(command.light_id is not None, "Missing lightId")
        if not self.effects.cancel(command.light_id):
            raise CommandError(f"No effect running on light {command.light_id}")
        return success_response()
