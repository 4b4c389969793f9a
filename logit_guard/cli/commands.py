"""
CLI command implementations.

This module contains the business logic for each CLI command:
- validate: Validate a generation_config.json file
- show: Display a config and the rule chain it builds
- apply: Run the rule chain on one decoding step read from JSON
"""

import json
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import torch

from logit_guard.config import GenerationConfig, read_options_file
from logit_guard.errors import ShapeMismatchError
from logit_guard.processing import build_rule_chain
from logit_guard.validation import validate_options

from .display import (
    print_header,
    print_success,
    print_error,
    print_info,
    print_json,
    print_validation_errors,
    print_options_table,
    print_rule_chain,
    print_step_summary,
    print_separator,
    console
)

ScoreValue = Union[float, str]


def load_json_file(path: Path) -> Any:
    """
    Load and parse a JSON file.

    Raises:
        ValueError: If file doesn't exist or isn't valid JSON
    """
    if not path.exists():
        raise ValueError(f"File not found: {path}")

    try:
        with open(path) as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}")


def decode_score(value: ScoreValue) -> float:
    """Parse a score from JSON: a number or one of "-inf", "inf", "nan"."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid score value: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.lower() in ("-inf", "inf", "+inf", "nan"):
        return float(value)
    raise ValueError(f"Invalid score value: {value!r}")


def encode_score(value: float) -> ScoreValue:
    """Render a score for JSON; non-finite values become strings."""
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "-inf" if value < 0 else "inf"
    return value


def load_step_file(path: Path) -> Tuple[List[List[int]], torch.Tensor]:
    """
    Load one decoding step from a JSON file.

    Expected format:
        {"histories": [[0, 5, 7], [0, 5, 9]],
         "scores": [[0.1, -1.2, ...], [0.3, "-inf", ...]]}

    Returns:
        Tuple of (histories, 2-D float scores tensor)

    Raises:
        ValueError: If the document is malformed
        ShapeMismatchError: If the score rows have different lengths
    """
    data = load_json_file(path)
    if not isinstance(data, dict) or "histories" not in data or "scores" not in data:
        raise ValueError(f"{path} must be an object with 'histories' and 'scores'")

    histories = data["histories"]
    rows = data["scores"]
    if not isinstance(histories, list) or not all(isinstance(h, list) for h in histories):
        raise ValueError("'histories' must be a list of token id lists")
    if not isinstance(rows, list) or not rows or not all(isinstance(r, list) for r in rows):
        raise ValueError("'scores' must be a non-empty list of score rows")

    for history in histories:
        for token in history:
            if isinstance(token, bool) or not isinstance(token, int):
                raise ValueError(f"Token ids must be integers, got {token!r}")

    vocab_size = len(rows[0])
    for i, row in enumerate(rows):
        if len(row) != vocab_size:
            raise ShapeMismatchError(
                f"Score row {i} has {len(row)} entries, row 0 has {vocab_size}"
            )

    scores = torch.tensor([[decode_score(v) for v in row] for row in rows], dtype=torch.float32)
    return histories, scores


def summarize_step(histories: List[List[int]], scores: torch.Tensor) -> List[Dict[str, Any]]:
    """Per-row statistics shown after ``apply``."""
    summary = []
    for history, row in zip(histories, scores):
        allowed = int((~torch.isneginf(row)).sum().item())
        best_token: Optional[int] = None
        if not bool(torch.isneginf(row).all()):
            best_token = int(torch.argmax(row).item())
        summary.append({
            "history_length": len(history),
            "allowed": allowed,
            "best_token": best_token,
        })
    return summary


def validate_command(config_path: Path) -> None:
    """
    Execute the validate command.

    Args:
        config_path: Path to generation_config.json
    """
    print_header("LogitGuard - Validate Config")

    options = read_options_file(config_path)
    print_success(f"Loaded {len(options)} option(s) from: {config_path}")

    result = validate_options(options)

    console.print()
    if result.is_valid:
        print_success("Validation passed!")
    else:
        print_error("Validation failed")
        print_validation_errors(result.errors)
        raise SystemExit(1)


def show_command(config_path: Path, show_all: bool) -> None:
    """
    Execute the show command.

    Args:
        config_path: Path to generation_config.json
        show_all: Show every option instead of only the non-default ones
    """
    print_header("LogitGuard - Generation Config")

    config = GenerationConfig.from_json_file(config_path)
    print_success(f"Loaded config from: {config_path}")

    if show_all:
        print_options_table(config.to_dict(), title="Generation Options")
    else:
        options = config.non_default_options()
        if options:
            print_options_table(options, title="Non-default Options")
        else:
            print_info("Every option is at its default value")

    print_separator()
    print_rule_chain(build_rule_chain(config))


def apply_command(config_path: Path, input_path: Path, output_path: Optional[Path]) -> None:
    """
    Execute the apply command.

    Args:
        config_path: Path to generation_config.json
        input_path: Path to the step JSON (histories and scores)
        output_path: Optional path to save the processed scores
    """
    print_header("LogitGuard - Apply Rule Chain")

    config = GenerationConfig.from_json_file(config_path)
    histories, scores = load_step_file(input_path)
    print_success(
        f"Loaded {scores.shape[0]} row(s) of {scores.shape[1]} scores from: {input_path}"
    )

    chain = build_rule_chain(config, vocab_size=scores.shape[1])
    print_rule_chain(chain)

    chain.apply_batch(histories, scores)
    print_step_summary(summarize_step(histories, scores))

    processed = {"scores": [[encode_score(v) for v in row] for row in scores.tolist()]}

    if output_path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w') as f:
            json.dump(processed, f, indent=2)
        print_success(f"Processed scores saved to: {output_path}")
    else:
        print_json(processed, title="Processed Scores")
