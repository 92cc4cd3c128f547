"""Unit tests for the main entry point.

Tests the main() function including:
- CLI argument validation
- Log level priority (CLI > env > config)
- Single, bulk and background modes and their exit codes
- Error handling
"""

from unittest.mock import MagicMock, Mock, patch

import pytest

from duty_notifier.config.environment import EnvironmentConfig
from duty_notifier.config.exceptions import ConfigurationError
from duty_notifier.main import (
    BACKGROUND_ACK_MESSAGE,
    EXIT_FAILURE,
    EXIT_INVALID_INPUT,
    EXIT_NOT_FOUND,
    EXIT_OK,
    load_runtime_config,
    main,
)
from duty_notifier.pipeline import BulkRunResult, InvalidRequestError, SingleRunResult
from duty_notifier.utils.timestamps import utc_now
from tests.helpers import make_app_config


def bulk_result(**overrides):
    result = BulkRunResult(
        run_id="run-1",
        from_date=None,
        to_date=None,
        run_started_at=utc_now(),
    )
    for key, value in overrides.items():
        setattr(result, key, value)
    return result


@pytest.fixture
def runtime():
    """Patch configuration, logging, database and pipeline construction."""
    app_config = make_app_config()
    env_config = EnvironmentConfig(smtp_host="smtp.x.edu", smtp_port=587, log_level="INFO")
    pipeline = MagicMock()

    with patch("duty_notifier.main.load_config", return_value=(app_config, env_config)) as load_config, \
            patch("duty_notifier.main.configure_logging") as configure_logging, \
            patch("duty_notifier.main.init_database") as init_database, \
            patch("duty_notifier.main.close_database") as close_database, \
            patch("duty_notifier.main.build_pipeline", return_value=pipeline):
        yield Mock(
            pipeline=pipeline,
            app_config=app_config,
            env_config=env_config,
            load_config=load_config,
            configure_logging=configure_logging,
            init_database=init_database,
            close_database=close_database,
        )


class TestLoadRuntimeConfig:
    def test_cli_level_wins(self):
        env_config = EnvironmentConfig(log_level="WARNING")
        with patch("duty_notifier.main.load_config", return_value=(make_app_config(), env_config)):
            _, loaded_env = load_runtime_config(None, "DEBUG")

        assert loaded_env.log_level == "DEBUG"

    def test_env_level_beats_config(self):
        env_config = EnvironmentConfig(log_level="WARNING")
        with patch("duty_notifier.main.load_config", return_value=(make_app_config(), env_config)):
            _, loaded_env = load_runtime_config(None, None)

        assert loaded_env.log_level == "WARNING"

    def test_config_level_is_fallback(self):
        app_config = make_app_config()
        app_config.logging.level = "ERROR"
        with patch("duty_notifier.main.load_config", return_value=(app_config, EnvironmentConfig())):
            _, loaded_env = load_runtime_config(None, None)

        assert loaded_env.log_level == "ERROR"


class TestArgumentValidation:
    @pytest.mark.parametrize(
        "argv",
        [
            [],
            ["--from-date", "2025-10-01"],
            ["--id", "E-1042", "--from-date", "2025-10-01"],
            ["--daemon", "--from-date", "2025-10-01"],
            ["--daemon", "--background"],
            ["--background", "--id", "E-1042", "--from-date", "2025-10-01", "--to-date", "2025-10-05"],
        ],
    )
    def test_invalid_combinations_exit_2(self, argv, runtime):
        with pytest.raises(SystemExit) as exc_info:
            main(argv)

        assert exc_info.value.code == 2
        runtime.load_config.assert_not_called()


class TestBulkMode:
    def test_successful_run(self, runtime, capsys):
        runtime.pipeline.run_bulk.return_value = bulk_result(flags_committed=True)

        exit_code = main(["--from-date", "2025-10-01", "--to-date", "2025-10-05"])

        assert exit_code == EXIT_OK
        runtime.pipeline.run_bulk.assert_called_once_with("2025-10-01", "2025-10-05")
        assert "Bulk mail process completed. Check logs." in capsys.readouterr().out
        runtime.init_database.assert_called_once_with(runtime.env_config.database_url)
        runtime.close_database.assert_called_once()

    def test_failed_sends_exit_1(self, runtime):
        result = bulk_result()
        result.outcomes.append(Mock(is_success=Mock(return_value=False)))
        runtime.pipeline.run_bulk.return_value = result

        assert main(["--from-date", "2025-10-01", "--to-date", "2025-10-05"]) == EXIT_FAILURE

    def test_aborted_run_exit_1(self, runtime):
        runtime.pipeline.run_bulk.return_value = bulk_result(aborted=True, error="db down")

        assert main(["--from-date", "2025-10-01", "--to-date", "2025-10-05"]) == EXIT_FAILURE

    def test_invalid_window_exit_2(self, runtime, capsys):
        runtime.pipeline.run_bulk.side_effect = InvalidRequestError("from_date is after to_date")

        exit_code = main(["--from-date", "2025-10-05", "--to-date", "2025-10-01"])

        assert exit_code == EXIT_INVALID_INPUT
        assert "Invalid request" in capsys.readouterr().err

    def test_cli_log_level_passed_to_logging(self, runtime):
        runtime.pipeline.run_bulk.return_value = bulk_result()

        main(["--from-date", "2025-10-01", "--to-date", "2025-10-05", "--log-level", "DEBUG"])

        assert runtime.configure_logging.call_args.kwargs["level"] == "DEBUG"


class TestSingleMode:
    @pytest.mark.parametrize(
        "status,expected",
        [
            ("sent", EXIT_OK),
            ("no_duties", EXIT_OK),
            ("not_found", EXIT_NOT_FOUND),
            ("no_contact", EXIT_NOT_FOUND),
            ("failed", EXIT_FAILURE),
        ],
    )
    def test_exit_codes(self, runtime, status, expected):
        runtime.pipeline.run_for_identifier.return_value = SingleRunResult(status=status, message="msg")

        exit_code = main(["--id", "E-1042", "--from-date", "2025-10-01", "--to-date", "2025-10-05"])

        assert exit_code == expected
        runtime.pipeline.run_for_identifier.assert_called_once_with("E-1042", "2025-10-01", "2025-10-05")
        runtime.pipeline.run_bulk.assert_not_called()

    def test_prints_message(self, runtime, capsys):
        runtime.pipeline.run_for_identifier.return_value = SingleRunResult(
            status="sent", message="Mail sent to Vikram Shah"
        )

        main(["--id", "E-1042", "--from-date", "2025-10-01", "--to-date", "2025-10-05"])

        assert "Mail sent to Vikram Shah" in capsys.readouterr().out


class TestBackgroundMode:
    def test_acknowledges_then_waits(self, runtime, capsys):
        runtime.pipeline.run_bulk.return_value = bulk_result(flags_committed=True)

        exit_code = main(["--background", "--from-date", "2025-10-01", "--to-date", "2025-10-05"])

        assert exit_code == EXIT_OK
        assert BACKGROUND_ACK_MESSAGE in capsys.readouterr().out
        runtime.pipeline.run_bulk.assert_called_once()

    def test_invalid_window_rejected_before_ack(self, runtime, capsys):
        exit_code = main(["--background", "--from-date", "2025-10-05", "--to-date", "2025-10-01"])

        assert exit_code == EXIT_INVALID_INPUT
        assert BACKGROUND_ACK_MESSAGE not in capsys.readouterr().out
        runtime.pipeline.run_bulk.assert_not_called()

    def test_job_exception_exit_1(self, runtime):
        runtime.pipeline.run_bulk.side_effect = RuntimeError("boom")

        assert main(["--background", "--from-date", "2025-10-01", "--to-date", "2025-10-05"]) == EXIT_FAILURE


class TestErrorHandling:
    def test_configuration_error_exit_1(self, capsys):
        with patch("duty_notifier.main.load_config", side_effect=ConfigurationError("bad config")):
            exit_code = main(["--from-date", "2025-10-01", "--to-date", "2025-10-05"])

        assert exit_code == EXIT_FAILURE
        assert "Configuration Error" in capsys.readouterr().err

    def test_unexpected_error_exit_1_and_closes_database(self, runtime, capsys):
        runtime.pipeline.run_bulk.side_effect = RuntimeError("unexpected")

        exit_code = main(["--from-date", "2025-10-01", "--to-date", "2025-10-05"])

        assert exit_code == EXIT_FAILURE
        assert "Fatal error" in capsys.readouterr().err
        runtime.close_database.assert_called_once()
