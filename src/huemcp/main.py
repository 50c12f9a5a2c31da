"""Line-delimited JSON command server for a Hue bridge."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Mapping

from dotenv import find_dotenv, load_dotenv

from huemcp.lib.bridge import HueBridge
from huemcp.lib.commands import CommandInterpreter
from huemcp.lib.effects import EffectEngine
from huemcp.lib.models import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    Config,
    Group,
    Light,
    Scene,
)
from huemcp.lib.server import LightServer

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"
RESOURCES = ("lights", "groups", "scenes")
log = logging.getLogger("huemcp")


def configure_logging(debug: bool) -> None:
    logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT, force=True)
    project_level = logging.DEBUG if debug else logging.INFO
    log.setLevel(project_level)


def print_error(message: str) -> None:
    print(message, file=sys.stderr)


def build_args() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="huemcp",
        description="Serve Hue light control over a JSON socket.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging for commands, bridge requests, and responses.",
    )
    parser.add_argument(
        "--env-file",
        dest="env_file",
        help="Read settings from this .env file. Default is the nearest .env, if any.",
    )

    bridge = argparse.ArgumentParser(add_help=False)
    bridge.add_argument(
        "--bridge-ip",
        dest="bridge_ip",
        help="Bridge address. Default is $HUE_BRIDGE_IP.",
    )
    bridge.add_argument(
        "--username",
        help="Bridge application key. Default is $HUE_USERNAME.",
    )
    bridge.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"Bridge request timeout in seconds. Default is {DEFAULT_TIMEOUT:g}.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser(
        "serve",
        parents=[bridge],
        help="Start the command server and keep the bridge session open.",
    )
    serve.add_argument(
        "--host",
        default=DEFAULT_HOST,
        help=f"Listen address. Default is {DEFAULT_HOST}",
    )
    serve.add_argument(
        "--port",
        type=int,
        help=f"Listen port. Default is $MCP_PORT or {DEFAULT_PORT}.",
    )
    serve.add_argument(
        "--sequential",
        action="store_true",
        help="Answer the commands of one connection strictly in arrival order.",
    )
    serve.add_argument(
        "--allow-overlap",
        dest="allow_overlap",
        action="store_true",
        help="Let a new effect run alongside an older one on the same light.",
    )

    listing = subparsers.add_parser(
        "list",
        parents=[bridge],
        help="Print the bridge's lights, groups, or scenes.",
    )
    listing.add_argument("resource", choices=RESOURCES, help="What to list.")

    return parser


def load_env(env_file: str | None) -> None:
    if env_file is None:
        load_dotenv(find_dotenv(usecwd=True))
        return
    if not os.path.isfile(env_file):
        raise SystemExit(f"Env file not found: {env_file}.")
    load_dotenv(env_file)


def resolve_port(port: int | None, environ: Mapping[str, str]) -> int:
    if port is None:
        raw_port = environ.get("MCP_PORT")
        try:
            port = int(raw_port) if raw_port else DEFAULT_PORT
        except ValueError:
            raise SystemExit(f"Invalid MCP_PORT value: {raw_port}.") from None
    if not 0 <= port <= 65535:
        raise SystemExit(f"Port must be between 0 and 65535, got {port}.")
    return port


def resolve_config(args: argparse.Namespace, environ: Mapping[str, str]) -> Config:
    bridge_ip = args.bridge_ip or environ.get("HUE_BRIDGE_IP")
    username = args.username or environ.get("HUE_USERNAME")
    if not bridge_ip or not username:
        raise SystemExit("HUE_BRIDGE_IP and HUE_USERNAME environment variables must be set.")

    port = DEFAULT_PORT
    if args.command == "serve":
        port = resolve_port(args.port, environ)

    return Config(
        bridge_ip=bridge_ip,
        username=username,
        host=getattr(args, "host", DEFAULT_HOST),
        port=port,
        timeout=args.timeout,
        sequential=getattr(args, "sequential", False),
        allow_overlap=getattr(args, "allow_overlap", False),
    )


def format_resource_table(resource: str, records: list[Light] | list[Group] | list[Scene]) -> str:
    lines = []
    if resource == "lights":
        lines.append(f"{'ID':>6}  {'Name':<32}  {'On':>5}  {'Bri':>4}")
        lines.append("-" * 53)
        for light in records:
            on = "  yes" if light.state.get("on") else "   no"
            bri = light.state.get("bri", "-")
            lines.append(f"{light.id:>6}  {light.name:<32}  {on:>5}  {bri!s:>4}")
    else:
        lines.append(f"{'ID':>16}  {'Name':<32}  Lights")
        lines.append("-" * 64)
        for record in records:
            lines.append(f"{record.id:>16}  {record.name:<32}  {', '.join(record.lights)}")
    return "\n".join(lines)


async def serve(config: Config) -> None:
    bridge = await HueBridge.connect(config.bridge_ip, config.username, timeout=config.timeout)
    async with bridge:
        lights = await bridge.get_all_lights()
        log.info("Loaded %d lights from bridge", len(lights))
        effects = EffectEngine(bridge, allow_overlap=config.allow_overlap)
        interpreter = CommandInterpreter(bridge, lights, effects)
        server = LightServer(
            interpreter,
            host=config.host,
            port=config.port,
            sequential=config.sequential,
        )
        try:
            await server.serve_forever()
        finally:
            await server.close()


async def list_resources(config: Config, resource: str) -> None:
    bridge = await HueBridge.connect(config.bridge_ip, config.username, timeout=config.timeout)
    async with bridge:
        if resource == "lights":
            records = await bridge.get_all_lights()
        elif resource == "groups":
            records = await bridge.get_all_groups()
        else:
            records = await bridge.get_all_scenes()
    print(format_resource_table(resource, records))


async def run(args: argparse.Namespace, config: Config) -> None:
    log.debug("Handling command=%s", args.command)

    if args.command == "serve":
        await serve(config)
        return

    if args.command == "list":
        await list_resources(config, args.resource)
        return


def main() -> None:
    parser = build_args()
    args = parser.parse_args()
    configure_logging(args.debug)

    config: Config | None = None
    try:
        load_env(args.env_file)
        config = resolve_config(args, os.environ)
        log.debug("Using bridge=%s port=%s", config.bridge_ip, config.port)
        asyncio.run(run(args, config))
    except KeyboardInterrupt:
        raise SystemExit(130) from None
    except SystemExit as exc:
        if isinstance(exc.code, str) and exc.code:
            print_error(exc.code)
            raise SystemExit(1) from None
        raise
    except Exception as exc:
        log.debug("Operation failed with config=%s", config, exc_info=True)
        print_error(f"Operation failed: {exc}")
        raise SystemExit(1) from None


if __name__ == "__main__":
    main()
