"""CLI entrypoint and orchestration for writeback."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

from aiohttp import web

from writeback.api import setup_api
from writeback.auth import User
from writeback.config import Config, ConfigError, load_config, load_handler
from writeback.connectors import default_hierarchy
from writeback.errors import ActionError
from writeback.executor import ActionExecutor
from writeback.models import Resource
from writeback.registry import ActionRegistry
from writeback.settings import Settings
from writeback.store import InMemoryResourceStore, ResourceStore, SQLiteResourceStore

logger = logging.getLogger("writeback")

# Exit codes for `perform`
EXIT_SUCCESS = 0
EXIT_ACTION_ERROR = 1
EXIT_INVALID_ARGS = 2
EXIT_CONFIG_ERROR = 3

KNOWN_COMMANDS = {"serve", "actions", "perform"}


def build_registry(config: Config) -> ActionRegistry:
    """Build the connector hierarchy and register configured handlers."""
    hierarchy = default_hierarchy()
    for conn in config.connectors:
        hierarchy.register(conn.name, parent=conn.parent, features=conn.features)
    registry = ActionRegistry(hierarchy)
    for h in config.handlers:
        try:
            registry.register(h.engine, h.action, load_handler(h.handler))
        except ValueError as e:
            raise ConfigError(f"Invalid handler registration for {h.engine}: {e}") from None
    return registry


def build_settings(config: Config) -> Settings:
    settings = Settings(config.settings)
    settings.load_env()
    return settings


async def build_store(config: Config) -> ResourceStore:
    """Open the configured store and seed it with configured databases."""
    resources = [Resource(d.id, d.name, d.engine, d.settings) for d in config.databases]
    if config.storage.type == "sqlite":
        store = SQLiteResourceStore(config.storage.path)
        await store.initialize()
        for resource in resources:
            await store.add_resource(resource)
        return store
    return InMemoryResourceStore(resources)


async def build_executor(config: Config) -> ActionExecutor:
    return ActionExecutor(
        registry=build_registry(config),
        store=await build_store(config),
        settings=build_settings(config),
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments with subcommand routing.

    Subcommands:
        serve     Start the HTTP server (default if no subcommand given)
        actions   List known actions
        perform   Perform one action locally and print its result
    """
    raw = list(argv) if argv is not None else sys.argv[1:]

    first_positional = next((a for a in raw if not a.startswith("-")), None)
    if first_positional not in KNOWN_COMMANDS:
        raw = ["serve", *raw]

    parser = argparse.ArgumentParser(description="writeback: actions engine for database writes")
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP server")
    serve_parser.add_argument("--config", default="config.yaml", help="Config file path")

    actions_parser = subparsers.add_parser("actions", help="List known actions")
    actions_parser.add_argument("--config", default="config.yaml", help="Config file path")

    perform_parser = subparsers.add_parser("perform", help="Perform an action")
    perform_parser.add_argument("action", help="Action name, e.g. row/create")
    perform_parser.add_argument("arg_map", help="Arg map as JSON")
    perform_parser.add_argument("--config", default="config.yaml", help="Config file path")

    return parser.parse_args(raw)


async def run(args: argparse.Namespace) -> None:
    """Serve the action API until interrupted."""
    config = load_config(args.config)
    executor = await build_executor(config)
    users = {
        u.token: User(id=u.id, email=u.email, is_superuser=u.is_superuser) for u in config.users
    }

    app = web.Application()
    setup_api(app, executor, users)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.server.host, config.server.port)
    await site.start()
    logger.info("Serving actions on http://%s:%d", config.server.host, config.server.port)
    logger.info("Known actions: %s", ", ".join(executor.known_actions()) or "(none)")

    try:
        await asyncio.Event().wait()
    finally:
        logger.info("Shutting down...")
        await runner.cleanup()
        await executor.close()
        logger.info("writeback stopped")


async def run_actions(args: argparse.Namespace) -> int:
    """Print known actions. Returns exit code."""
    try:
        config = load_config(args.config)
        registry = build_registry(config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    print(json.dumps(sorted(str(a) for a in registry.known_actions()), indent=2))
    return EXIT_SUCCESS


async def run_perform(args: argparse.Namespace) -> int:
    """Perform one action. Returns exit code."""
    try:
        arg_map = json.loads(args.arg_map)
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON arg map: {e}", file=sys.stderr)
        return EXIT_INVALID_ARGS

    try:
        config = load_config(args.config)
        executor = await build_executor(config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        result = await executor.perform_action(args.action, arg_map)
    except ActionError as e:
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return EXIT_ACTION_ERROR
    finally:
        await executor.close()
    print(json.dumps(result, indent=2))
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> None:
    """Synchronous entrypoint for the CLI."""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s — %(message)s",
    )
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    args = parse_args(argv)

    if args.command == "serve":
        try:
            asyncio.run(run(args))
        except ConfigError as e:
            logger.error("Configuration error: %s", e)
            sys.exit(1)
        except KeyboardInterrupt:
            pass
    elif args.command == "actions":
        sys.exit(asyncio.run(run_actions(args)))
    elif args.command == "perform":
        sys.exit(asyncio.run(run_perform(args)))


if __name__ == "__main__":
    main()
