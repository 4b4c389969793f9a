"""
Generation config validator with detailed error reporting.

Options come from user code, CLI flags, or ``generation_config.json`` files
shipped with models. Nothing downstream re-checks them, so every option is
validated against GENERATION_CONFIG_SCHEMA before a GenerationConfig exists.

Usage:
    ```python
    from logit_guard.validation import validate_options

    result = validate_options({"max_length": 0, "top_p": 1.5})
    if not result.is_valid:
        for error in result.errors:
            print(f"Error at {error.path}: {error.message}")
    ```
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator
from jsonschema.validators import extend

from logit_guard.validation.schema import GENERATION_CONFIG_SCHEMA

logger = logging.getLogger(__name__)


def _is_strict_integer(checker: Any, instance: Any) -> bool:
    return isinstance(instance, int) and not isinstance(instance, bool)


# Draft 7 treats 2.0 as an integer; token ids and counts must be real ints
OptionsValidator = extend(
    Draft7Validator,
    type_checker=Draft7Validator.TYPE_CHECKER.redefine("integer", _is_strict_integer),
)


@dataclass
class ValidationError:
    """
    Represents a single validation error.

    Attributes:
        path: Path to the offending option (e.g. ".forced_decoder_ids.0")
        message: Human-readable error message
        schema_path: Path in the schema that failed
        validator: Schema keyword that failed (e.g. "type", "minimum")
        expected: What was expected
        actual: What was found
    """
    path: str
    message: str
    schema_path: str
    validator: str
    expected: Any
    actual: Any


@dataclass
class ValidationResult:
    """
    Result of validating generation options.

    Attributes:
        is_valid: Whether the options are valid
        errors: List of validation errors (empty if valid)
        options: The options that were validated
    """
    is_valid: bool
    errors: List[ValidationError]
    options: Dict[str, Any]


def validate_options(
    options: Dict[str, Any],
    schema: Optional[Dict[str, Any]] = None
) -> ValidationResult:
    """
    Validate a dict of generation options against the option schema.

    Args:
        options: Option name -> value (lists, not tuples)
        schema: Schema to validate against (default: GENERATION_CONFIG_SCHEMA)

    Returns:
        ValidationResult: Validation result with every error found

    Example:
        ```python
        result = validate_options({"num_beams": 0})
        assert not result.is_valid
        print(result.errors[0].message)  # "0 is less than the minimum of 1"
        ```
    """
    validator = OptionsValidator(schema if schema is not None else GENERATION_CONFIG_SCHEMA)

    errors = [
        _convert_jsonschema_error(error, options)
        for error in sorted(validator.iter_errors(options), key=lambda e: [str(p) for p in e.path])
    ]

    if not errors:
        errors = check_consistency(options)

    if errors:
        logger.debug(f"Generation options failed validation with {len(errors)} error(s)")

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        options=options
    )


def validate_json(text: str) -> ValidationResult:
    """
    Parse a JSON document and validate it as generation options.

    Args:
        text: JSON string (e.g. contents of generation_config.json)

    Returns:
        ValidationResult
    """
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        return ValidationResult(
            is_valid=False,
            errors=[
                ValidationError(
                    path="",
                    message=f"Invalid JSON: {e.msg}",
                    schema_path="",
                    validator="json",
                    expected="valid JSON",
                    actual=f"parse error at position {e.pos}"
                )
            ],
            options={}
        )

    if not isinstance(parsed, dict):
        return ValidationResult(
            is_valid=False,
            errors=[
                ValidationError(
                    path="root",
                    message="Generation config must be a JSON object",
                    schema_path=".type",
                    validator="type",
                    expected="object",
                    actual=type(parsed).__name__
                )
            ],
            options={}
        )

    return validate_options(parsed)


def check_consistency(options: Dict[str, Any]) -> List[ValidationError]:
    """
    Check rules that span several options.

    Missing options are read at their GenerationConfig defaults. Only called
    once the schema check passed, so every present value has the right type.

    Args:
        options: Option name -> value

    Returns:
        List of errors with validator="consistency"
    """
    errors: List[ValidationError] = []

    def add(path: str, message: str, expected: Any, actual: Any) -> None:
        errors.append(ValidationError(
            path=path,
            message=message,
            schema_path="consistency",
            validator="consistency",
            expected=expected,
            actual=actual
        ))

    max_length = options.get("max_length", 20)
    min_length = options.get("min_length", 0)
    if min_length > max_length:
        add(".min_length", f"min_length ({min_length}) is greater than max_length ({max_length})",
            f"<= {max_length}", min_length)

    max_new_tokens = options.get("max_new_tokens")
    min_new_tokens = options.get("min_new_tokens")
    if max_new_tokens is not None and min_new_tokens is not None and min_new_tokens > max_new_tokens:
        add(".min_new_tokens",
            f"min_new_tokens ({min_new_tokens}) is greater than max_new_tokens ({max_new_tokens})",
            f"<= {max_new_tokens}", min_new_tokens)

    num_beams = options.get("num_beams", 1)
    num_beam_groups = options.get("num_beam_groups", 1)
    if num_beam_groups > num_beams or num_beams % num_beam_groups != 0:
        add(".num_beam_groups",
            f"num_beams ({num_beams}) must be a multiple of num_beam_groups ({num_beam_groups})",
            f"a divisor of {num_beams}", num_beam_groups)

    num_return_sequences = options.get("num_return_sequences", 1)
    if not options.get("do_sample", False) and num_return_sequences > num_beams:
        add(".num_return_sequences",
            f"num_return_sequences ({num_return_sequences}) cannot exceed num_beams ({num_beams}) "
            f"without sampling",
            f"<= {num_beams}", num_return_sequences)

    if options.get("return_timestamps", False):
        if options.get("no_timestamps_token_id") is None:
            add(".no_timestamps_token_id", "return_timestamps requires no_timestamps_token_id",
                "a token id", None)
        eos_token_id = options.get("eos_token_id")
        if eos_token_id is None:
            add(".eos_token_id", "return_timestamps requires eos_token_id", "a token id", None)
        elif isinstance(eos_token_id, (list, tuple)) and len(eos_token_id) != 1:
            add(".eos_token_id", "return_timestamps requires a single eos_token_id",
                "a token id", eos_token_id)
        if not options.get("forced_decoder_ids"):
            add(".forced_decoder_ids", "return_timestamps requires forced_decoder_ids",
                "a non-empty list of (step, token) pairs", options.get("forced_decoder_ids"))

    return errors


def _convert_jsonschema_error(error: Any, data: Any) -> ValidationError:
    """
    Convert a jsonschema ValidationError to our ValidationError.

    Args:
        error: jsonschema ValidationError
        data: The options being validated

    Returns:
        ValidationError: Our error representation
    """
    path = "." + ".".join(str(p) for p in error.path) if error.path else "root"

    actual = data
    for key in error.path:
        if isinstance(actual, dict):
            actual = actual.get(key, "MISSING")
        elif isinstance(actual, list):
            try:
                actual = actual[int(key)]
            except (IndexError, ValueError):
                actual = "INVALID_INDEX"
        else:
            actual = "UNKNOWN"

    schema_path = "." + ".".join(str(p) for p in error.schema_path) if error.schema_path else "root"

    expected = error.schema.get(error.validator, "see schema") if isinstance(error.schema, dict) else "see schema"

    return ValidationError(
        path=path,
        message=error.message,
        schema_path=schema_path,
        validator=error.validator,
        expected=expected,
        actual=actual
    )


def format_validation_errors(errors: List[ValidationError]) -> str:
    """
    Format validation errors as a human-readable string.

    Example output:
        Validation failed with 2 error(s):
          1. At .num_beams: 0 is less than the minimum of 1
             Expected: 1
             Got: 0
    """
    if not errors:
        return "No validation errors"

    lines = [f"Validation failed with {len(errors)} error(s):"]

    for i, error in enumerate(errors, 1):
        lines.append(f"\n  {i}. At {error.path}: {error.message}")
        lines.append(f"     Expected: {error.expected}")
        lines.append(f"     Got: {error.actual}")

    return "\n".join(lines)


def quick_validate(options: Dict[str, Any]) -> bool:
    """Quick validation - just returns True/False."""
    return validate_options(options).is_valid
