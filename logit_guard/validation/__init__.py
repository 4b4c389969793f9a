"""
Generation option validation module.

Every GenerationConfig passes through this layer before it exists, so rules
can rely on well-typed options.

Components:
    - schema: JSON Schema (Draft 7) describing every generation option
    - validator: Schema and cross-field validation using jsonschema
    - error_formatter: Convert validation errors to human-readable messages

Validation Flow:
    1. Validate the options dict against GENERATION_CONFIG_SCHEMA
    2. Collect all schema errors (not just the first)
    3. If the types are right, run cross-field consistency checks
    4. Format errors with context (path, expected, actual)

Example:
    ```python
    from logit_guard.validation import validate_options

    result = validate_options({"num_beams": 4, "num_beam_groups": 3})
    if not result.is_valid:
        for error in result.errors:
            print(f"  - {error.path}: {error.message}")
    ```
"""

from logit_guard.validation.schema import GENERATION_CONFIG_SCHEMA
from logit_guard.validation.validator import (
    validate_options,
    validate_json,
    check_consistency,
    quick_validate,
    ValidationResult,
    ValidationError,
    format_validation_errors
)
from logit_guard.validation.error_formatter import format_error_with_context, suggest_fix

__all__ = [
    "GENERATION_CONFIG_SCHEMA",
    "validate_options",
    "validate_json",
    "check_consistency",
    "quick_validate",
    "ValidationResult",
    "ValidationError",
    "format_validation_errors",
    "format_error_with_context",
    "suggest_fix",
]
