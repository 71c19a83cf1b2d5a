"""Tests for configuration loading and validation (lockbox/config)."""

import pytest

from lockbox.config import ConfigManager, is_valid_cron, validate_retention_days
from lockbox.config.config_manager import split_patterns
from lockbox.exceptions import ConfigurationError, ValidationError


class TestConfigLoading:
    """Test suite for ConfigManager.load precedence."""

    def test_defaults_without_any_settings(self):
        """Test every section falls back to built-in defaults."""
        manager = ConfigManager(env_file=None, environ={})
        manager.load()

        assert manager.get_s3_config()["bucket"] == "lockbox"
        assert manager.get_s3_config()["region"] == "auto"
        assert manager.get_s3_config()["storage_class"] == "STANDARD"
        assert manager.get_retention_days() == 30
        assert manager.get_backup_config()["temp_dir"] == "/tmp/lockbox-backups"
        assert manager.get_backup_config()["exclude_patterns"] == []
        schedule = manager.get_schedule_config()
        assert schedule["volumes"] == "0 2 * * *"
        assert schedule["pg"] == "15 2 * * *"
        assert schedule["redis"] == "30 2 * * *"
        assert schedule["cleanup"] == "45 2 * * *"

    def test_environment_overrides(self, make_config):
        """Test environment variables populate their sections."""
        manager = make_config(BACKUP_RETENTION_DAYS="7", S3_REGION="eu-west-1", CRON_PG="0 3 * * *")

        assert manager.get_retention_days() == 7
        assert manager.get_s3_config()["region"] == "eu-west-1"
        assert manager.get_s3_config()["bucket"] == "backups"
        assert manager.get_schedule_config()["pg"] == "0 3 * * *"

    def test_env_file_fills_only_unset_keys(self, tmp_path):
        """Test .env values never override the process environment."""
        env_file = tmp_path / ".env"
        env_file.write_text("S3_BUCKET_NAME=from-file\nBACKUP_PASSWORD=file-password\n", encoding="utf-8")

        manager = ConfigManager(env_file=str(env_file), environ={"S3_BUCKET_NAME": "from-env"})
        manager.load()

        assert manager.get_s3_config()["bucket"] == "from-env"
        assert manager.require_password() == "file-password"
        assert manager.environ["BACKUP_PASSWORD"] == "file-password"

    def test_missing_env_file_is_ignored(self, tmp_path):
        """Test a non-existent .env file is not an error."""
        manager = ConfigManager(env_file=str(tmp_path / "missing.env"), environ={})
        manager.load()

        assert manager.get_retention_days() == 30

    def test_yaml_file_with_environment_on_top(self, tmp_path):
        """Test YAML values are used unless the environment sets the same key."""
        config_file = tmp_path / "lockbox.yaml"
        config_file.write_text(
            "s3:\n  bucket: yaml-bucket\n  region: us-east-1\n"
            "redis:\n  bgsave_timeout: 120\n",
            encoding="utf-8",
        )

        manager = ConfigManager(str(config_file), env_file=None, environ={"S3_REGION": "auto"})
        manager.load()

        assert manager.get_s3_config()["bucket"] == "yaml-bucket"
        assert manager.get_s3_config()["region"] == "auto"
        assert manager.get_redis_config()["bgsave_timeout"] == 120
        assert manager.get_redis_config()["data_dir"] == "/data"

    def test_missing_config_file(self, tmp_path):
        """Test an explicit but missing YAML file raises ConfigurationError."""
        manager = ConfigManager(str(tmp_path / "nope.yaml"), env_file=None, environ={})

        with pytest.raises(ConfigurationError, match="not found"):
            manager.load()

    def test_exclude_patterns_are_split(self, make_config):
        """Test BACKUP_EXCLUDE_PATTERNS is split on commas and trimmed."""
        manager = make_config(BACKUP_EXCLUDE_PATTERNS="*.log, cache ,,tmp/*")

        assert manager.get_backup_config()["exclude_patterns"] == ["*.log", "cache", "tmp/*"]


class TestConfigValidation:
    """Test suite for ConfigManager.validate."""

    @pytest.mark.parametrize("days", ["0", "-1", "abc", "1.5"])
    def test_invalid_retention(self, make_config, days):
        """Test retention must be a positive integer."""
        with pytest.raises(ValidationError, match="BACKUP_RETENTION_DAYS must be a positive integer"):
            make_config(BACKUP_RETENTION_DAYS=days)

    def test_invalid_endpoint_scheme(self, make_config):
        """Test the endpoint must be an http(s) URL."""
        with pytest.raises(ValidationError, match="S3_ENDPOINT"):
            make_config(S3_ENDPOINT="s3.example.com")

    def test_invalid_cron(self, make_config):
        """Test a four-field cron expression is rejected with the variable name."""
        with pytest.raises(ValidationError, match="CRON_REDIS"):
            make_config(CRON_REDIS="0 2 * *")

    def test_non_mapping_section(self, tmp_path):
        """Test a YAML section that is not a mapping is rejected."""
        config_file = tmp_path / "lockbox.yaml"
        config_file.write_text("s3: just-a-string\n", encoding="utf-8")

        with pytest.raises(ValidationError, match="'s3'"):
            ConfigManager(str(config_file), env_file=None, environ={}).load()

    def test_invalid_bgsave_timeout(self, tmp_path):
        """Test the Redis BGSAVE timeout must be positive."""
        config_file = tmp_path / "lockbox.yaml"
        config_file.write_text("redis:\n  bgsave_timeout: 0\n", encoding="utf-8")

        with pytest.raises(ValidationError, match="bgsave_timeout"):
            ConfigManager(str(config_file), env_file=None, environ={}).load()


class TestRequirements:
    """Test suite for require_password and require_s3."""

    def test_require_password_missing(self, make_config):
        """Test a missing password raises ConfigurationError."""
        manager = make_config(env={"S3_ENDPOINT": "https://s3.example.com"})

        with pytest.raises(ConfigurationError, match="BACKUP_PASSWORD"):
            manager.require_password()

    def test_require_s3_lists_missing_variables(self, make_config):
        """Test every missing S3 variable is named."""
        manager = make_config(env={"S3_ENDPOINT": "https://s3.example.com"})

        with pytest.raises(ConfigurationError) as exc_info:
            manager.require_s3()

        message = str(exc_info.value)
        assert "S3_ACCESS_KEY" in message
        assert "S3_SECRET_KEY" in message
        assert "S3_ENDPOINT" not in message

    def test_require_s3_complete(self, config):
        """Test a complete S3 section is returned."""
        assert config.require_s3()["endpoint"] == "https://s3.example.com"


class TestValidators:
    """Test suite for the standalone validators."""

    @pytest.mark.parametrize(
        "expression,expected",
        [
            ("0 2 * * *", True),
            ("*/15 * * * 1-5", True),
            ("0 2 * *", False),
            ("0 2 * * * *", False),
            ("61 2 * * *", False),
            ("", False),
        ],
    )
    def test_is_valid_cron(self, expression, expected):
        """Test cron expressions need five parseable fields."""
        assert is_valid_cron(expression) is expected

    def test_validate_retention_days_accepts_strings(self):
        """Test numeric strings are converted to int."""
        assert validate_retention_days("14") == 14
        assert validate_retention_days(3) == 3

    def test_validate_retention_rejects_bool(self):
        """Test booleans are not treated as integers."""
        with pytest.raises(ValidationError):
            validate_retention_days(True)

    def test_split_patterns_accepts_lists(self):
        """Test list input is normalised like a comma separated string."""
        assert split_patterns([" a ", "", "b"]) == ["a", "b"]
        assert split_patterns(None) == []
