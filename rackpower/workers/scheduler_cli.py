from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from typing import Any

from rackpower.config import load_config, setup_logging
from rackpower.domain.exceptions import ConfigurationError, NotFoundError, RackPowerError, ValidationError
from rackpower.services.container import ServiceContainer

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rackpower", description="Control sockets and run socket automations")
    parser.add_argument("--registry", help="Socket registry JSON file (default: RACKPOWER_REGISTRY_PATH)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Run the automation scheduler until interrupted")
    run.add_argument("--automations", help="JSON list of automation definitions to create at startup")

    commands.add_parser("rooms", help="Print the room / rack / socket hierarchy")

    status = commands.add_parser("status", help="Read sockets (all when no ID is given)")
    status.add_argument("socket_ids", nargs="*", metavar="SOCKET_ID")

    toggle = commands.add_parser("toggle", help="Toggle a socket")
    toggle.add_argument("socket_id", metavar="SOCKET_ID")

    set_state = commands.add_parser("set", help="Switch a socket on or off")
    set_state.add_argument("socket_id", metavar="SOCKET_ID")
    set_state.add_argument("state", choices=["on", "off"])

    return parser


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


def _run(container: ServiceContainer, automations_path: str | None) -> int:
    if automations_path:
        container.load_automations(automations_path)

    logger.info("Scheduler running (press Ctrl+C to stop)")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Stopping scheduler...")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the ``rackpower`` command."""
    args = _build_parser().parse_args(argv)

    try:
        config = load_config()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.registry:
        config.registry_path = args.registry
    setup_logging(debug=args.debug or config.DEBUG, log_file=config.log_file, level=config.log_level)

    try:
        container = ServiceContainer.build(config, start_scheduler=args.command == "run")
    except ConfigurationError as e:
        logger.error(f"Failed to start: {e}")
        return 1

    try:
        if args.command == "run":
            return _run(container, args.automations or config.automations_path or None)

        device_control = container.device_control
        if args.command == "rooms":
            _print_json([room.to_dict() for room in device_control.rooms()])
        elif args.command == "status":
            statuses = device_control.fetch_statuses(args.socket_ids)
            _print_json({socket_id: status.to_dict() for socket_id, status in statuses.items()})
        elif args.command == "toggle":
            _print_json(device_control.toggle(args.socket_id).to_dict())
        elif args.command == "set":
            _print_json(device_control.set_state(args.socket_id, args.state == "on").to_dict())
        return 0

    except (ValidationError, NotFoundError) as e:
        print(json.dumps({"error": str(e), **e.detail}, default=str), file=sys.stderr)
        return 2
    except RackPowerError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        container.shutdown()


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
