"""
LogitGuard: Rule Chains for Constrained Token Scores

LogitGuard sits between a sequence model's raw per-token scores (logits) and
the token-selection step of autoregressive generation. At every decoding
step a chain of independent rules rules out, forces, or reweights vocabulary
entries based on the generation history and the generation config.

Key Features:
    - Forced tokens at fixed steps (BOS, EOS, decoder prompts)
    - Repetition penalty and n-gram blocking
    - Timestamp pairing for speech transcription
    - Immutable, schema-validated GenerationConfig

Quick Start:
    ```python
    import torch
    from logit_guard import GenerationConfig, build_rule_chain

    config = GenerationConfig(
        repetition_penalty=1.2,
        no_repeat_ngram_size=3,
        forced_bos_token_id=0,
    )
    chain = build_rule_chain(config, vocab_size=32000)

    scores = model_step(...)          # (batch_size, 32000)
    chain.apply_batch(histories, scores)
    next_tokens = scores.argmax(dim=-1)
    ```

Architecture:
    1. Config: Options merged over defaults, validated with JSON Schema
    2. Builder: Config -> ordered Rule Chain
    3. Rules: Mutate one row's score buffer in place
    4. Chain: Applies every rule, in order, to every row
"""

__version__ = "0.1.0"

from logit_guard.config import GenerationConfig  # noqa: F401
from logit_guard.errors import (  # noqa: F401
    InvalidConfigurationError,
    LogitGuardError,
    RuleNotImplementedError,
    ShapeMismatchError,
)
from logit_guard.processing import LogitsRule, LogitsRuleChain, build_rule_chain  # noqa: F401

__all__ = [
    "GenerationConfig",
    "LogitsRule",
    "LogitsRuleChain",
    "build_rule_chain",
    "LogitGuardError",
    "RuleNotImplementedError",
    "InvalidConfigurationError",
    "ShapeMismatchError",
]
