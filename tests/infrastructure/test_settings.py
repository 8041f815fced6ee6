"""Tests for model settings loading and validation."""

import json

import pytest
from pydantic import ValidationError

from clinical_model.infrastructure.settings import ENV_PREFIX, ModelSettings, settings

ENV_NAMES = [f"{ENV_PREFIX}{name.upper()}" for name in ModelSettings.model_fields]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every CLINICAL_MODEL_* variable for the duration of a test."""
    for name in ENV_NAMES:
        # setenv first so that undo also removes values written by load_dotenv
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


class TestModelSettings:
    """Test suite for ModelSettings."""

    def test_defaults(self, clean_env):
        """Test the default switches."""
        loaded = ModelSettings.from_environment()
        assert loaded.validating is True
        assert loaded.check_reference_types is True
        assert loaded.extended_codeable_concept_validation is True
        assert loaded.check_control_chars is True
        assert loaded.log_level == "INFO"
        assert loaded.log_json is False

    def test_from_environment(self, clean_env):
        """Test loading switches from environment variables."""
        clean_env.setenv("CLINICAL_MODEL_VALIDATING", "false")
        clean_env.setenv("CLINICAL_MODEL_CHECK_REFERENCE_TYPES", "0")
        clean_env.setenv("CLINICAL_MODEL_LOG_JSON", "Yes")
        clean_env.setenv("CLINICAL_MODEL_LOG_LEVEL", "debug")

        loaded = ModelSettings.from_environment()
        assert loaded.validating is False
        assert loaded.check_reference_types is False
        assert loaded.log_json is True
        assert loaded.log_level == "DEBUG"

    def test_invalid_boolean(self, clean_env):
        """Test that an unparseable boolean is rejected."""
        clean_env.setenv("CLINICAL_MODEL_VALIDATING", "sometimes")
        with pytest.raises(ValueError, match="CLINICAL_MODEL_VALIDATING"):
            ModelSettings.from_environment()

    def test_env_file(self, clean_env, tmp_path):
        """Test loading variables from a .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text("CLINICAL_MODEL_CHECK_CONTROL_CHARS=off\n")
        loaded = ModelSettings.from_environment(env_file)
        assert loaded.check_control_chars is False

    def test_env_file_does_not_override_environment(self, clean_env, tmp_path):
        """Test that the process environment wins over the .env file."""
        clean_env.setenv("CLINICAL_MODEL_LOG_LEVEL", "ERROR")
        env_file = tmp_path / ".env"
        env_file.write_text("CLINICAL_MODEL_LOG_LEVEL=DEBUG\n")
        assert ModelSettings.from_environment(env_file).log_level == "ERROR"

    def test_missing_env_file(self, clean_env, tmp_path):
        """Test that a missing .env file falls back to the environment."""
        loaded = ModelSettings.from_environment(tmp_path / "missing.env")
        assert loaded.validating is True

    def test_from_file(self, tmp_path):
        """Test loading settings from a JSON file."""
        config_file = tmp_path / "settings.json"
        config_file.write_text(json.dumps({"validating": False, "log_level": "warning"}))
        loaded = ModelSettings.from_file(config_file)
        assert loaded.validating is False
        assert loaded.log_level == "WARNING"

    def test_from_file_errors(self, tmp_path):
        """Test missing, malformed and invalid configuration files."""
        with pytest.raises(FileNotFoundError):
            ModelSettings.from_file(tmp_path / "missing.json")

        broken = tmp_path / "broken.json"
        broken.write_text("{")
        with pytest.raises(ValueError, match="Invalid JSON"):
            ModelSettings.from_file(broken)

        unknown = tmp_path / "unknown.json"
        unknown.write_text(json.dumps({"validate_everything": True}))
        with pytest.raises(ValidationError):
            ModelSettings.from_file(unknown)

    def test_invalid_log_level(self):
        """Test that unknown log levels are rejected."""
        with pytest.raises(ValidationError, match="Unknown log level"):
            ModelSettings(log_level="LOUD")

    def test_assignment_is_validated(self):
        """Test that the global settings re-validate on assignment."""
        settings.log_level = "warning"
        assert settings.log_level == "WARNING"
        with pytest.raises(ValidationError):
            settings.log_level = "LOUD"
        with pytest.raises(ValidationError):
            settings.validating = "perhaps"
