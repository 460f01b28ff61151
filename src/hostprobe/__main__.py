"""CLI entry point for HostProbe.

``serve`` runs the HTTP API service continuously with a Prometheus metrics
server; ``check`` runs a single host test and prints the report as JSON.

Examples:
    ```bash
    python -m hostprobe serve
    python -m hostprobe serve --config config/api.yaml --log-level DEBUG
    python -m hostprobe check host.json
    python -m hostprobe check - --config config/manager.yaml < host.json
    ```
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from hostprobe.core import start_metrics_server
from hostprobe.core.exceptions import HostProbeError
from hostprobe.core.logger import Logger, StructuredFormatter
from hostprobe.core.yaml import load_yaml
from hostprobe.models.host import Host
from hostprobe.services.api import Api
from hostprobe.services.troubleshoot import TroubleshootManager


CONFIG_BASE = Path("config")
API_CONFIG = CONFIG_BASE / "api.yaml"
MANAGER_CONFIG = CONFIG_BASE / "manager.yaml"

logger = Logger("cli")


async def run_api(service_dict: dict[str, Any], *, once: bool) -> int:
    """Run the API service until a shutdown signal arrives.

    In one-shot mode the service starts, runs a single cycle, and exits,
    which is useful to verify configuration and upstream reachability.

    Returns:
        Exit code: 0 for success, 1 for failure.
    """
    try:
        service = Api.from_dict(service_dict) if service_dict else Api()
    except (HostProbeError, ValueError) as e:
        logger.error("config_invalid", error=str(e))
        return 1

    if once:
        try:
            async with service:
                await service.run()
            logger.info("api_completed")
            return 0
        except Exception as e:  # Intentionally broad: CLI error boundary for one-shot mode
            logger.error("api_failed", error=str(e))
            return 1

    metrics_config = service.config.metrics
    metrics_server = await start_metrics_server(metrics_config)

    if metrics_config.enabled:
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    # Signal handling for graceful shutdown
    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        service.request_shutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        async with service:
            await service.run_forever()
        return 0
    except Exception as e:  # Intentionally broad: CLI error boundary for continuous mode
        logger.error("api_failed", error=str(e))
        return 1
    finally:
        await metrics_server.stop()
        if metrics_config.enabled:
            logger.info("metrics_server_stopped")


async def run_check(
    manager_dict: dict[str, Any], host_source: str, *, timeout: float | None
) -> int:
    """Test one host and print its report.

    Returns:
        Exit code: 0 if no probe reported an error, 2 if any did, 1 if the
        test could not run.
    """
    try:
        raw = sys.stdin.read() if host_source == "-" else Path(host_source).read_text()
        host = Host.from_dict(json.loads(raw))
    except (OSError, ValueError, TypeError, AttributeError) as e:
        logger.error("host_invalid", source=host_source, error=str(e))
        return 1

    try:
        manager = (
            TroubleshootManager.from_dict(manager_dict) if manager_dict else TroubleshootManager()
        )
        async with manager:
            result = await manager.test_host(host, timeout=timeout)
    except (HostProbeError, ValueError) as e:
        logger.error("check_failed", error=str(e))
        return 1

    print(json.dumps(result.to_dict(), indent=2))  # noqa: T201
    return 2 if any(r.errors for r in result.results()) else 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="hostprobe",
        description="HostProbe storage host troubleshooter",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP API service")
    serve.add_argument(
        "--config",
        type=Path,
        default=API_CONFIG,
        help=f"API config path (default: {API_CONFIG})",
    )
    serve.add_argument(
        "--once",
        action="store_true",
        help="Run one cycle and exit (default: run continuously)",
    )

    check = commands.add_parser("check", help="Test one host and print the report")
    check.add_argument("host", help="Path to a host JSON descriptor, or '-' for stdin")
    check.add_argument(
        "--config",
        type=Path,
        default=MANAGER_CONFIG,
        help=f"Manager config path (default: {MANAGER_CONFIG})",
    )
    check.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Deadline for the whole test in seconds (default: from config)",
    )

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Configure the root logger with structured formatting.

    Installs a ``StructuredFormatter`` on the root handler so that all
    log output -- from both ``Logger`` (with ``structured_kv`` extra) and
    plain ``logging.getLogger()`` calls in lower layers -- is unified as
    ``level name message key=value ...``.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file as a dict, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.warning("config_not_found", path=str(path))
        return {}
    return load_yaml(path)


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args and dispatch the subcommand."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = _load_yaml_dict(args.config)
    except HostProbeError as e:
        logger.error("config_invalid", path=str(args.config), error=str(e))
        return 1

    try:
        if args.command == "serve":
            return await run_api(config, once=args.once)
        return await run_check(config, args.host, timeout=args.timeout)
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
