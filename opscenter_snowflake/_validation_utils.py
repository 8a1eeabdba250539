"""Centralized validation utilities for opscenter-snowflake.

This module provides standardized validation patterns so environment reads and
input checks behave the same way across the package.
"""

import os
from typing import Any, Dict, List, Optional

from ._error_handling import SnowflakeErrorHandler


class SnowflakeValidationUtils:
    """Centralized validation utilities for Snowflake integrations."""

    @staticmethod
    def validate_non_empty_string(value: Any, field_name: str) -> str:
        """Validate that a value is a non-empty string.

        Args:
            value: Value to validate
            field_name: Name of the field for error messages

        Returns:
            Validated and stripped string

        Raises:
            ValueError: If validation fails
        """
        try:
            if not value or not isinstance(value, str) or not value.strip():
                raise ValueError(f"{field_name} must be a non-empty string")
            return value.strip()
        except Exception as e:
            SnowflakeErrorHandler.log_and_raise(e, f"validate {field_name}")

    @staticmethod
    def validate_optional_env_vars(optional_vars: List[str]) -> Dict[str, Optional[str]]:
        """Get optional environment variables.

        Blank values are treated as unset.

        Args:
            optional_vars: List of optional environment variable names

        Returns:
            Dictionary mapping variable names to their values (None if not set)
        """
        env_values = {}
        for var in optional_vars:
            value = os.getenv(var)
            env_values[var] = value if value and value.strip() else None
        return env_values

    @staticmethod
    def read_optional_file(file_path: Optional[str], file_description: str) -> Optional[str]:
        """Read a text file if it exists, returning None when absent, unreadable or not UTF-8 text.

        Args:
            file_path: Path to the file
            file_description: Description of the file for log messages

        Returns:
            File content, or None
        """
        if not file_path or not os.path.isfile(file_path):
            return None

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            SnowflakeErrorHandler.log_error(f"read {file_description} from {file_path}", e)
            return None

    @staticmethod
    def validate_model_name(model: str) -> str:
        """Validate Cortex model name for security and format.

        Args:
            model: Model name to validate

        Returns:
            Validated model name

        Raises:
            ValueError: If model name is invalid
        """
        try:
            if not model or not isinstance(model, str):
                raise ValueError("Model name must be a non-empty string")

            model = model.strip()
            if "'" in model or '"' in model or ";" in model:
                raise ValueError("Model name contains invalid characters")

            return model

        except Exception as e:
            SnowflakeErrorHandler.log_and_raise(e, "validate model name")
