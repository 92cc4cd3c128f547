#!/usr/bin/env python3
"""Sample dispatch harness for end-to-end validation.

Seeds a local SQLite store from a YAML fixture and runs a bulk dispatch
against it without sending real mail: every notice is handed to an
in-memory transport and summarized on stdout.

Usage:
    # Seed tests/fixtures/sample_store.yaml and dispatch 2025-10-01..2025-10-05
    python scripts/run_sample_dispatch.py --config config.example.yaml

    # Custom window and database
    python scripts/run_sample_dispatch.py --config config.yaml \\
        --from-date 2025-10-01 --to-date 2025-10-10 --database /tmp/duties.db

    # Print the rendered HTML of every notice
    python scripts/run_sample_dispatch.py --config config.yaml --show-html
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from duty_notifier.config.environment import EnvironmentConfig
from duty_notifier.config.exceptions import ConfigurationError
from duty_notifier.config.loader import parse_config_file
from duty_notifier.logging.config import configure_logging
from duty_notifier.notifications import NotificationService
from duty_notifier.persistence.database import close_database, init_database
from duty_notifier.pipeline import DispatchPipeline
from tests.helpers import RecordingTransport, load_store_fixture, seed_store


def print_header(title: str):
    """Print a formatted section header."""
    width = 80
    print("\n" + "=" * width)
    print(f" {title}")
    print("=" * width + "\n")


def print_summary_table(result):
    """Print a formatted summary table of a bulk run."""
    print_header("Dispatch Summary")

    metrics = [
        ("Assignments Selected", result.selected_count),
        ("Assignments Contributing", len(result.contributing_ids)),
        ("Notices Sent", result.sent_count),
        ("Failures", result.failed_count),
        ("Flags Committed", "Yes" if result.flags_committed else "No"),
        ("Aborted", "Yes" if result.aborted else "No"),
        ("Duration (seconds)", f"{result.duration_seconds:.2f}"),
    ]

    max_label_width = max(len(label) for label, _ in metrics)

    print("┌" + "─" * (max_label_width + 2) + "┬" + "─" * 22 + "┐")
    print(f"│ {'Metric':<{max_label_width}} │ {'Value':<20} │")
    print("├" + "─" * (max_label_width + 2) + "┼" + "─" * 22 + "┤")
    for label, value in metrics:
        print(f"│ {label:<{max_label_width}} │ {str(value):<20} │")
    print("└" + "─" * (max_label_width + 2) + "┴" + "─" * 22 + "┘")

    if result.outcomes:
        print("\n" + "-" * 80)
        print(" Per-Recipient Outcomes")
        print("-" * 80 + "\n")
        for outcome in result.outcomes:
            line = f"{outcome.person_key:<10} {outcome.status:<13} {outcome.recipient or '-'}"
            if outcome.error:
                line += f"  ({outcome.error})"
            print(line)


def main():
    """Main entry point for the sample dispatch harness."""
    parser = argparse.ArgumentParser(
        description="Seed a sample duty store and run a bulk dispatch without sending mail",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config.example.yaml"),
        help="Path to configuration file (default: config.example.yaml)",
    )
    parser.add_argument(
        "--fixtures",
        type=Path,
        default=Path("tests/fixtures/sample_store.yaml"),
        help="Store fixture to seed (default: tests/fixtures/sample_store.yaml)",
    )
    parser.add_argument(
        "--database",
        type=Path,
        default=Path("data/sample_dispatch.db"),
        help="Path to SQLite database (default: data/sample_dispatch.db)",
    )
    parser.add_argument("--from-date", default="2025-10-01", help="First day of the window")
    parser.add_argument("--to-date", default="2025-10-05", help="Last day of the window")
    parser.add_argument("--show-html", action="store_true", help="Print each rendered HTML body")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: INFO)",
    )

    args = parser.parse_args()
    load_dotenv()

    print_header("Invigilation Duty Notifier - Sample Dispatch Harness")
    print(f"Configuration file: {args.config}")
    print(f"Fixtures: {args.fixtures}")
    print(f"Database: {args.database}")
    print(f"Window: {args.from_date} .. {args.to_date}")

    if not args.fixtures.exists():
        print(f"\n❌ Error: Fixture file not found: {args.fixtures}")
        return 1

    try:
        # SMTP/Graph variables are not needed: nothing leaves this process
        app_config = parse_config_file(args.config)
        configure_logging(
            level=args.log_level,
            format_type=app_config.logging.format,
            environment="validation",
            mask_addresses=app_config.logging.mask_addresses,
        )

        database_url = f"sqlite:///{args.database.absolute()}"
        env_config = EnvironmentConfig(database_url=database_url, environment="validation")

        print(f"\n💾 Seeding database: {args.database}")
        init_database(database_url)
        seed_store(load_store_fixture(args.fixtures))
        print("✓ Store seeded")

        transport = RecordingTransport()
        service = NotificationService(
            transport=transport,
            notice_config=app_config.notice,
            sender=f"{app_config.email.sender_name or 'Examination Cell'} <noreply@example.edu>",
        )
        pipeline = DispatchPipeline(app_config, env_config, service)

        print("\n🚀 Executing bulk dispatch...")
        print(f"   Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        result = pipeline.run_bulk(args.from_date, args.to_date)
        print(f"   Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

        print_summary_table(result)

        if args.show_html:
            for email in transport.sent:
                print_header(f"{email.subject} -> {email.recipient}")
                print(email.html_body)

        print("\n" + "-" * 80)
        print(f"To inspect the store: sqlite3 {args.database.absolute()} 'SELECT * FROM invigilation;'")
        print(f"To clean up: rm {args.database.absolute()}")
        print("-" * 80 + "\n")

        return 1 if result.aborted or result.any_failure else 0

    except ConfigurationError as e:
        print(f"\n❌ Configuration error: {e}")
        return 1
    except Exception as e:
        print(f"\n❌ Fatal error: {e}")
        import traceback
        traceback.print_exc()
        return 1
    finally:
        close_database()


if __name__ == "__main__":
    sys.exit(main())
