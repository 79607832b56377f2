from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from remote_loader.config import YamlConfigLoader
from remote_loader.config.models import AppConfig, ConfigLoadRequest
from remote_loader.errors import ConfigError
from remote_loader.health.store import HealthStore
from remote_loader.host.activation import ModuleActivator
from remote_loader.host.http import AiohttpClient
from remote_loader.host.storage import JsonFileKeyValueStore
from remote_loader.loader.pipeline import Pipeline
from remote_loader.logging import init_logging

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="remote-loader", description="Remote payload loader runner")
    parser.add_argument(
        "--config",
        default="data/config/config.yaml",
        help="Path to config.yaml (default: data/config/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    # Command: run
    subparsers.add_parser("run", help="Resolve, fetch and activate the remote payload once")

    # Command: health
    subparsers.add_parser("health", help="Print the persisted health status")

    return parser


async def _load_config(args: argparse.Namespace) -> AppConfig:
    loader = YamlConfigLoader()
    request = ConfigLoadRequest(
        yaml_path=args.config,
    )
    return await loader.load(request)


async def _run_once(config: AppConfig) -> int:
    store = JsonFileKeyValueStore(config.state.path)
    async with AiohttpClient() as http:
        pipeline = Pipeline(
            config=config.loader,
            http=http,
            store=store,
            code_activator=ModuleActivator(surface_name=config.loader.surface_name),
        )
        report = await pipeline.run()

    print(json.dumps(report.to_dict(), indent=2))
    return 0 if report.succeeded else 1


def _print_health(config: AppConfig) -> int:
    health = HealthStore(JsonFileKeyValueStore(config.state.path))
    status = health.status_report()
    print(json.dumps(status, indent=2))
    return 0 if status["healthy"] else 1


async def _main_async() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        config = await _load_config(args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    init_logging(config.logging)

    if args.command == "run":
        return await _run_once(config)
    if args.command == "health":
        return _print_health(config)
    return 2


def main() -> None:
    try:
        exit_code = asyncio.run(_main_async())
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
