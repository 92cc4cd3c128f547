"""Main entry point for the invigilation duty notifier."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import signal
import sys
import threading
import time
from pathlib import Path
from typing import List, Optional, Tuple

from duty_notifier.config.environment import EnvironmentConfig
from duty_notifier.config.exceptions import ConfigurationError
from duty_notifier.config.loader import load_config
from duty_notifier.config.models import AppConfig
from duty_notifier.logging import get_logger
from duty_notifier.logging.config import configure_logging
from duty_notifier.notifications import NotificationService, build_sender_address, build_transport
from duty_notifier.persistence.database import close_database, init_database
from duty_notifier.pipeline import BulkRunResult, DispatchPipeline, InvalidRequestError, validate_date_window
from duty_notifier.scheduler import SchedulerService

logger = get_logger(__name__, component="cli")

BACKGROUND_ACK_MESSAGE = "Bulk mail process started. Check logs."

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_INPUT = 2
EXIT_NOT_FOUND = 3

SINGLE_EXIT_CODES = {
    "sent": EXIT_OK,
    "no_duties": EXIT_OK,
    "not_found": EXIT_NOT_FOUND,
    "no_contact": EXIT_NOT_FOUND,
    "failed": EXIT_FAILURE,
}


def load_runtime_config(
    config_path: Path, log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and settle the effective log level.

    Log level priority: CLI > environment > config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level or "INFO"

    return app_config, env_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="duty-notifier",
        description="Invigilation duty notifier - sends each invigilator one notice listing their duties",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml or config/config.yaml)",
    )
    parser.add_argument("--from-date", help="First day of the duty window (YYYY-MM-DD)")
    parser.add_argument("--to-date", help="Last day of the duty window, inclusive (YYYY-MM-DD)")
    parser.add_argument(
        "--id",
        dest="id_value",
        metavar="EID_OR_HTNO",
        help="Send one notice to the staff member or student with this EID or HTNO",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--background",
        action="store_true",
        help="Submit the bulk run to the background scheduler and acknowledge immediately",
    )
    mode.add_argument(
        "--daemon",
        action="store_true",
        help="Run the bulk trigger on a rolling window every schedule.interval",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    return parser


def validate_args(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    """Reject flag combinations that cannot run; exits with code 2."""
    if args.daemon:
        if args.id_value or args.from_date or args.to_date:
            parser.error("--daemon computes its own window; do not combine it with --id or dates")
        return

    if args.id_value is not None and args.background:
        parser.error("--background only applies to the bulk run")

    if not args.from_date or not args.to_date:
        required = "--id, --from-date and --to-date" if args.id_value is not None else "--from-date and --to-date"
        parser.error(f"{required} are required")


def build_pipeline(app_config: AppConfig, env_config: EnvironmentConfig) -> DispatchPipeline:
    """Construct the shared collaborators once and wire them into a pipeline."""
    transport = build_transport(app_config, env_config)
    notification_service = NotificationService(
        transport=transport,
        notice_config=app_config.notice,
        sender=build_sender_address(env_config, app_config.email.sender_name),
    )
    logger.info(
        "Services initialized",
        extra={"event": "services.initialized", "transport": app_config.email.transport},
    )
    return DispatchPipeline(
        app_config=app_config,
        env_config=env_config,
        notification_service=notification_service,
    )


def run_single(pipeline: DispatchPipeline, args: argparse.Namespace) -> int:
    result = pipeline.run_for_identifier(args.id_value, args.from_date, args.to_date)
    print(result.message)
    return SINGLE_EXIT_CODES.get(result.status, EXIT_FAILURE)


def _bulk_exit_code(result: Optional[BulkRunResult]) -> int:
    if result is None or result.aborted or result.any_failure:
        return EXIT_FAILURE
    return EXIT_OK


def run_bulk(pipeline: DispatchPipeline, args: argparse.Namespace) -> int:
    result = pipeline.run_bulk(args.from_date, args.to_date)
    print(result.message)
    return _bulk_exit_code(result)


def run_background(pipeline: DispatchPipeline, args: argparse.Namespace) -> int:
    # Input errors must surface before the acknowledgement
    from_date, to_date = validate_date_window(args.from_date, args.to_date)

    scheduler_service = SchedulerService()
    handle = scheduler_service.submit_once(pipeline.run_bulk, from_date, to_date)
    print(BACKGROUND_ACK_MESSAGE, flush=True)

    try:
        handle.wait()
    finally:
        scheduler_service.shutdown(wait=True)

    if handle.error is not None:
        return EXIT_FAILURE
    return _bulk_exit_code(handle.result)


def run_daemon(pipeline: DispatchPipeline, app_config: AppConfig) -> int:
    shutdown_event = threading.Event()
    scheduler_service = SchedulerService(
        run_callable=pipeline.run_upcoming,
        interval_seconds=app_config.schedule.interval_seconds,
        shutdown_event=shutdown_event,
    )

    def signal_handler(signum, frame):
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum},
        )
        scheduler_service.shutdown(wait=False)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    scheduler_service.start()
    logger.info(
        "Scheduler started. Press Ctrl+C to stop",
        extra={
            "event": "service.daemon_mode.started",
            "lookahead_days": app_config.schedule.lookahead_days,
        },
    )

    try:
        shutdown_event.wait()
    except KeyboardInterrupt:
        logger.info(
            "Keyboard interrupt received, shutting down",
            extra={"event": "service.keyboard_interrupt"},
        )
        scheduler_service.shutdown(wait=False)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the invigilation duty notifier.

    Returns:
        Exit code: 0 success, 1 configuration/fatal error or failed sends,
        2 invalid input, 3 identifier not found or without contact address
    """
    start_time = time.time()
    parser = build_parser()
    args = parser.parse_args(argv)
    validate_args(parser, args)

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
            mask_addresses=app_config.logging.mask_addresses,
        )
        logger.info(
            "Invigilation duty notifier starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "mode": "daemon" if args.daemon else ("single" if args.id_value else "bulk"),
            },
        )

        init_database(env_config.database_url)
        pipeline = build_pipeline(app_config, env_config)

        try:
            if args.daemon:
                return run_daemon(pipeline, app_config)
            if args.id_value is not None:
                return run_single(pipeline, args)
            if args.background:
                return run_background(pipeline, args)
            return run_bulk(pipeline, args)
        finally:
            close_database()
            logger.info(
                "Invigilation duty notifier stopped",
                extra={"event": "service.stopping", "uptime_seconds": round(time.time() - start_time, 2)},
            )

    except InvalidRequestError as e:
        print(f"Invalid request: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={"event": "config.error", "error_type": "ConfigurationError"},
        )
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return EXIT_OK
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error",
            extra={"event": "service.fatal", "error_type": type(e).__name__, "error": str(e)},
            exc_info=True,
        )
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
