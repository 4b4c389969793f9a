"""
Logits processing module.

This module implements the rules that rule out, force, or reweight
vocabulary entries before the next token is picked, and the chain that
applies them to a batch.

Components:
    - base: LogitsRule base class and score buffer helpers
    - force: ForceTokensRule, ForcedBOSTokenRule, ForcedEOSTokenRule
    - repetition: RepetitionPenaltyRule, NoRepeatNGramRule
    - suppress: MinLengthRule, SuppressTokensRule, SuppressTokensAtBeginRule,
      InfNanRemoveRule
    - timestamps: TimestampRule for speech transcription
    - rule_chain: LogitsRuleChain, applies rules row by row
    - builder: build_rule_chain, composes a chain from a GenerationConfig

Example:
    ```python
    import torch
    from logit_guard.config import GenerationConfig
    from logit_guard.processing import build_rule_chain

    config = GenerationConfig(forced_bos_token_id=0, no_repeat_ngram_size=2)
    chain = build_rule_chain(config)

    scores = torch.randn(2, 100)
    chain.apply_batch([[5], [5, 9, 5]], scores)
    ```
"""

from logit_guard.processing.base import LogitsRule
from logit_guard.processing.force import (
    ForcedBOSTokenRule,
    ForcedEOSTokenRule,
    ForceTokensRule,
)
from logit_guard.processing.repetition import (
    NoRepeatNGramRule,
    RepetitionPenaltyRule,
    calc_banned_ngram_tokens,
    get_banned_ngram_tokens,
    get_ngrams,
)
from logit_guard.processing.suppress import (
    InfNanRemoveRule,
    MinLengthRule,
    SuppressTokensAtBeginRule,
    SuppressTokensRule,
)
from logit_guard.processing.timestamps import TimestampRule
from logit_guard.processing.rule_chain import LogitsRuleChain
from logit_guard.processing.builder import build_rule_chain, build_rules

__all__ = [
    "LogitsRule",
    "ForceTokensRule",
    "ForcedBOSTokenRule",
    "ForcedEOSTokenRule",
    "RepetitionPenaltyRule",
    "NoRepeatNGramRule",
    "get_ngrams",
    "get_banned_ngram_tokens",
    "calc_banned_ngram_tokens",
    "MinLengthRule",
    "SuppressTokensRule",
    "SuppressTokensAtBeginRule",
    "InfNanRemoveRule",
    "TimestampRule",
    "LogitsRuleChain",
    "build_rule_chain",
    "build_rules",
]
