"""Model Settings and Configuration.

This module provides the process-wide switches of the element model: whether
builders validate, which optional checks run, and how logging is set up.
Settings are loaded from environment variables (optionally via a ``.env``
file) or from a JSON file and are validated before use.

Environment Variables:
    - CLINICAL_MODEL_VALIDATING: Validate instances on ``build()`` (default true)
    - CLINICAL_MODEL_CHECK_REFERENCE_TYPES: Check Reference target types (default true)
    - CLINICAL_MODEL_EXTENDED_CODEABLE_CONCEPT_VALIDATION: Require a bound
      CodeableConcept to carry a coding from the bound system (default true)
    - CLINICAL_MODEL_CHECK_CONTROL_CHARS: Reject control characters in strings (default true)
    - CLINICAL_MODEL_LOG_LEVEL: Logging level (default INFO)
    - CLINICAL_MODEL_LOG_JSON: Emit JSON log lines (default false)
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "CLINICAL_MODEL_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {ENV_PREFIX}{name}: {raw!r}")


class ModelSettings(BaseModel):
    """Switches that govern construction and validation of model instances.

    Settings are mutable so that callers (and tests) can toggle a check for
    the duration of a block of work; assignments are re-validated.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    validating: bool = Field(True, description="Run validate() inside build()")
    check_reference_types: bool = Field(True, description="Check Reference target types")
    extended_codeable_concept_validation: bool = Field(
        True, description="Require a coding from the bound system in bound CodeableConcepts"
    )
    check_control_chars: bool = Field(True, description="Reject control characters in strings")
    log_level: str = Field("INFO", description="Logging level name")
    log_json: bool = Field(False, description="Emit structured JSON log lines")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the logging level name."""
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def from_environment(cls, env_file: Optional[Union[str, Path]] = None) -> "ModelSettings":
        """Load settings from ``CLINICAL_MODEL_*`` environment variables.

        Parameters:
            env_file: Optional ``.env`` file loaded (without overriding the
                process environment) before the variables are read

        Returns:
            ModelSettings instance

        Raises:
            ValueError: If a variable holds an unparseable value
        """
        if env_file is not None:
            env_path = Path(env_file)
            if env_path.exists():
                load_dotenv(env_path)
                logger.debug(f"Loaded environment variables from {env_path}")
            else:
                logger.warning(f"Environment file not found: {env_path}")

        data: Dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            data[name] = _parse_bool(name.upper(), raw) if field.annotation is bool else raw
        return cls(**data)

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> "ModelSettings":
        """Load settings from a JSON file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file is not valid JSON or holds invalid settings
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, "r") as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {str(e)}") from e

        return cls(**config_data)


# Global settings instance
settings = ModelSettings.from_environment()
