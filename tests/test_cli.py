"""Tests for the command line interface (lockbox/cli.py)."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from lockbox.cli import main
from lockbox.exceptions import ConfigurationError, RestoreError


@pytest.fixture
def app():
    with patch("lockbox.cli.Lockbox") as mock_cls:
        instance = mock_cls.return_value
        instance.backup.return_value.has_failures.return_value = False
        instance.cleanup.return_value.has_failures.return_value = False
        instance.restore_all.return_value.has_failures.return_value = False
        yield mock_cls


@pytest.fixture
def cli():
    return CliRunner()


class TestBackupCommands:
    """Test suite for the backup-* commands."""

    @pytest.mark.parametrize(
        "command,kind",
        [("backup-volumes", "volume"), ("backup-pg", "pg"), ("backup-redis", "redis")],
    )
    def test_backup_success(self, cli, app, command, kind):
        """Test each command backs up its type and exits 0."""
        result = cli.invoke(main, [command])

        assert result.exit_code == 0
        app.return_value.backup.assert_called_once_with(kind)
        app.assert_called_once_with(None, env_file=".env")

    def test_backup_with_failures_exits_1(self, cli, app):
        """Test a batch with failed targets exits non-zero."""
        app.return_value.backup.return_value.has_failures.return_value = True

        result = cli.invoke(main, ["backup-pg"])

        assert result.exit_code == 1

    def test_configuration_error_exits_1(self, cli, app):
        """Test library errors are logged and exit 1."""
        app.return_value.backup.side_effect = ConfigurationError("BACKUP_PASSWORD is not set.")

        result = cli.invoke(main, ["backup-volumes"])

        assert result.exit_code == 1

    def test_config_option(self, cli, app, tmp_path):
        """Test --config and --env-file reach the application."""
        config_file = tmp_path / "lockbox.yaml"
        config_file.write_text("{}\n", encoding="utf-8")

        result = cli.invoke(main, ["--config", str(config_file), "--env-file", "prod.env", "backup-redis"])

        assert result.exit_code == 0
        app.assert_called_once_with(str(config_file), env_file="prod.env")

    def test_log_level_override(self, cli, app):
        """Test --log-level reconfigures logging."""
        app.return_value.config.config = {}
        app.return_value.config.get_logging_config.return_value = {"level": "DEBUG"}

        with patch("lockbox.cli.configure_logging") as mock_configure:
            result = cli.invoke(main, ["--log-level", "debug", "backup-pg"])

        assert result.exit_code == 0
        assert app.return_value.config.config["logging"]["level"] == "DEBUG"
        mock_configure.assert_called_once_with({"level": "DEBUG"})


class TestCleanupCommand:
    """Test suite for the cleanup command."""

    def test_cleanup_days_and_dry_run(self, cli, app):
        """Test the optional DAYS argument and --dry-run are forwarded."""
        result = cli.invoke(main, ["cleanup", "7", "--dry-run"])

        assert result.exit_code == 0
        app.return_value.cleanup.assert_called_once_with("7", dry_run=True)

    def test_cleanup_defaults(self, cli, app):
        """Test cleanup without arguments uses the configured retention."""
        result = cli.invoke(main, ["cleanup"])

        assert result.exit_code == 0
        app.return_value.cleanup.assert_called_once_with(None, dry_run=False)


class TestRestoreCommand:
    """Test suite for the restore command."""

    def test_requires_name_and_file(self, cli, app, caplog):
        """Test single restores need NAME and FILE and exit with 1."""
        result = cli.invoke(main, ["restore", "pg", "db"])

        assert result.exit_code == 1
        assert "restore pg requires NAME and FILE." in caplog.text
        app.assert_not_called()

    def test_invalid_type(self, cli, app, caplog):
        """Test unknown restore types are logged and exit with 1."""
        result = cli.invoke(main, ["restore", "mysql", "db", "file.7z"])

        assert result.exit_code == 1
        assert "Invalid type 'mysql'" in caplog.text
        app.assert_not_called()

    def test_yes_skips_confirmation(self, cli, app):
        """Test --yes passes no confirmation callback."""
        result = cli.invoke(main, ["restore", "pg", "db", "s3://backups/pg/db/f.sql.xz.7z", "--yes"])

        assert result.exit_code == 0
        app.return_value.restore.assert_called_once_with(
            "pg", "db", "s3://backups/pg/db/f.sql.xz.7z", confirm=None
        )

    def test_batch_mode_env(self, cli, app):
        """Test BATCH_MODE behaves like --yes."""
        result = cli.invoke(main, ["restore", "redis", "cache", "dump.7z"], env={"BATCH_MODE": "true"})

        assert result.exit_code == 0
        assert app.return_value.restore.call_args.kwargs["confirm"] is None

    @pytest.mark.parametrize("answer,expected", [("yes\n", True), ("y\n", False), ("no\n", False)])
    def test_interactive_confirmation(self, cli, app, answer, expected):
        """Test only a literal 'yes' confirms the restore."""
        answers = []

        def restore(kind, name, source, confirm):
            answers.append(confirm("This will overwrite volume 'data'. Continue?"))

        app.return_value.restore.side_effect = restore

        result = cli.invoke(main, ["restore", "volume", "data", "data.7z"], input=answer)

        assert result.exit_code == 0
        assert answers == [expected]
        assert "(yes/no)" in result.output

    def test_restore_all(self, cli, app):
        """Test all-* types run a batch restore of the matching kind."""
        result = cli.invoke(main, ["restore", "all-volumes"])

        assert result.exit_code == 0
        app.return_value.restore_all.assert_called_once_with("volume")
        app.return_value.restore.assert_not_called()

    def test_restore_all_with_failures(self, cli, app):
        """Test a batch restore with failures exits 1."""
        app.return_value.restore_all.return_value.has_failures.return_value = True

        result = cli.invoke(main, ["restore", "all-pg"])

        assert result.exit_code == 1

    def test_restore_error(self, cli, app):
        """Test restore errors exit 1."""
        app.return_value.restore.side_effect = RestoreError("Backup file not found: x.7z")

        result = cli.invoke(main, ["restore", "pg", "db", "x.7z", "-y"])

        assert result.exit_code == 1


class TestUtilityCommands:
    """Test suite for check, crontab and schedule."""

    def test_check(self, cli, app):
        """Test a passing health check."""
        result = cli.invoke(main, ["check"])

        assert result.exit_code == 0
        assert "Health check passed" in result.output

    def test_check_failure(self, cli, app):
        """Test a failing health check exits 1."""
        app.return_value.check.side_effect = ConfigurationError("S3 configuration incomplete")

        result = cli.invoke(main, ["check"])

        assert result.exit_code == 1

    def test_crontab_stdout(self, cli, app):
        """Test the crontab is printed."""
        app.return_value.crontab.return_value = "0 2 * * * lockbox backup-volumes\n"

        result = cli.invoke(main, ["crontab"])

        assert result.output == "0 2 * * * lockbox backup-volumes\n"

    def test_crontab_output_file(self, cli, app, tmp_path):
        """Test --output writes a world-readable file."""
        app.return_value.crontab.return_value = "45 2 * * * lockbox cleanup\n"
        target = tmp_path / "backup-cron"

        result = cli.invoke(main, ["crontab", "--output", str(target)])

        assert result.exit_code == 0
        assert target.read_text(encoding="utf-8") == "45 2 * * * lockbox cleanup\n"
        assert target.stat().st_mode & 0o777 == 0o644

    def test_schedule_stops_on_interrupt(self, cli, app):
        """Test Ctrl-C ends the scheduler cleanly."""
        app.return_value.scheduler.return_value.run_forever.side_effect = KeyboardInterrupt

        result = cli.invoke(main, ["schedule"])

        assert result.exit_code == 0
