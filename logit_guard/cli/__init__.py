"""
Command-line interface module.

This module provides a rich terminal interface for LogitGuard using Typer and Rich.

Commands:
    - validate: Validate a generation_config.json file
    - show: Display non-default options and the rule chain they build
    - apply: Run the rule chain on one decoding step stored as JSON

Example Usage:
    ```bash
    # Check a model's generation config
    logit-guard validate --config generation_config.json

    # See which rules it turns on
    logit-guard show --config generation_config.json

    # Process one step, with debug logging of every rule decision
    logit-guard --log-level DEBUG apply \\
        --config generation_config.json \\
        --input step.json \\
        --output processed.json
    ```
"""

from .main import app

__all__ = ["app"]
