from __future__ import annotations

import argparse
import json
import logging
import time
from typing import Any

from signage.config import load_config, setup_logging
from signage.domain.exceptions import SignageError
from signage.services.container import ServiceContainer

logger = logging.getLogger(__name__)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="signage-scheduler")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Run the background sweep loop (default)")
    sub.add_parser("sweep", help="Run one expiry & restoration sweep and print its report")

    resolve = sub.add_parser("resolve", help="Print the content a device shows now")
    resolve.add_argument("device", help="Device key or display name (e.g. TV1 or 'TV 1')")

    status = sub.add_parser("status", help="Print a diagnostic summary for a device")
    status.add_argument("device", help="Device key or display name")
    return parser


def _run_loop(container: ServiceContainer) -> int:
    logger.info("Scheduler running (press Ctrl+C to stop)")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Stopping scheduler...")
    for job in container.scheduler.get_jobs():
        logger.info("Job summary: %s", json.dumps(job.to_dict(), sort_keys=True))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the content sweep loop, or a one-off command against the catalog."""
    args = _build_parser().parse_args(argv)
    command = args.command or "run"

    config = load_config()
    setup_logging(debug=config.DEBUG, level=config.log_level, log_file=config.log_file)

    container = ServiceContainer.build(config, start_scheduler=command == "run")
    service = container.scheduling_service
    try:
        if command == "run":
            return _run_loop(container)

        if command == "sweep":
            _print_json(service.run_sweep().to_dict())
            return 0

        if command == "resolve":
            item = service.resolve_for_device(args.device)
            _print_json(item.to_dict() if item else None)
            return 0

        if command == "status":
            _print_json(service.device_status(args.device))
            return 0
    except SignageError as e:
        logger.error("%s failed: %s", command, e)
        print(f"Error: {e}")
        return 2
    finally:
        container.shutdown()

    return 0


if __name__ == "__main__":
    import sys

    raise SystemExit(main(sys.argv[1:]))
