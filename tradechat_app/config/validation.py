"""Configuration validation utilities."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_stream_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate stream parameters."""
        errors = []

        if "timeout_seconds" in params:
            value = params["timeout_seconds"]
            if not _is_number(value) or value <= 0:
                errors.append(ValidationError(
                    field="timeout_seconds",
                    message="Must be a positive number",
                    value=value
                ))

        if "max_tokens" in params:
            value = params["max_tokens"]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(ValidationError(
                    field="max_tokens",
                    message="Must be a positive integer",
                    value=value
                ))

        if "temperature" in params:
            value = params["temperature"]
            if not _is_number(value) or value < 0 or value > 2:
                errors.append(ValidationError(
                    field="temperature",
                    message="Must be a number between 0 and 2",
                    value=value
                ))

        if "url" in params:
            value = params["url"]
            if not isinstance(value, str) or not value.startswith(("http://", "https://")):
                errors.append(ValidationError(
                    field="url",
                    message="Must be an http(s) URL",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_simulation_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate simulation parameters."""
        errors = []

        for name in ("n_paths", "steps", "hours_per_week"):
            if name in params:
                value = params[name]
                if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive integer",
                        value=value
                    ))

        if "confidence_scale" in params:
            value = params["confidence_scale"]
            if not _is_number(value) or value <= 0:
                errors.append(ValidationError(
                    field="confidence_scale",
                    message="Must be a positive number",
                    value=value
                ))

        if "drift_offset" in params:
            value = params["drift_offset"]
            if not _is_number(value) or value < 0:
                errors.append(ValidationError(
                    field="drift_offset",
                    message="Must be a non-negative number",
                    value=value
                ))

        if "min_step_factor" in params:
            value = params["min_step_factor"]
            if not _is_number(value) or value <= 0 or value >= 1:
                errors.append(ValidationError(
                    field="min_step_factor",
                    message="Must be a positive number below 1",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_cache_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate cache parameters."""
        errors = []

        if "ttl_seconds" in params:
            value = params["ttl_seconds"]
            if not _is_number(value) or value < 0:
                errors.append(ValidationError(
                    field="ttl_seconds",
                    message="Must be a non-negative number",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate complete configuration."""
        errors = []

        if "stream" in config:
            errors.extend(ConfigValidator.validate_stream_params(config["stream"]))

        if "simulation" in config:
            errors.extend(ConfigValidator.validate_simulation_params(config["simulation"]))

        if "cache" in config:
            errors.extend(ConfigValidator.validate_cache_params(config["cache"]))

        return errors
