"""
Error formatter - turn option validation errors into actionable messages.
"""

from logit_guard.validation.validator import ValidationError


def format_error_with_context(error: ValidationError) -> str:
    """
    Format an error with the offending option and value.

    Args:
        error: Validation error

    Returns:
        str: Multi-line description
    """
    lines = [
        f"Invalid option at {error.path}",
        f"   Problem: {error.message}",
        f"   Expected: {error.expected}",
        f"   Got: {error.actual!r}",
    ]

    if error.validator:
        lines.append(f"   Validator: {error.validator}")

    return "\n".join(lines)


def suggest_fix(error: ValidationError) -> str:
    """
    Suggest how to fix a validation error.

    Args:
        error: Validation error

    Returns:
        str: Suggested fix
    """
    option = error.path.lstrip(".").split(".")[0] or "the config"

    if error.validator == "additionalProperties":
        return "Remove the unknown option or move it under `generation_kwargs`"

    elif error.validator in ["type", "anyOf"]:
        return f"Change `{option}` to the documented type"

    elif error.validator in ["minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum"]:
        return f"Keep `{option}` within its allowed range"

    elif error.validator in ["minItems", "maxItems"]:
        return f"`{option}` entries must have exactly the documented number of items"

    elif error.validator == "consistency":
        return "Adjust the related options so they agree with each other"

    else:
        return "Check the option documentation"
