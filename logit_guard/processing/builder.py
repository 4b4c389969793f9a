"""
Build a Rule Chain from a GenerationConfig.

Rules are appended in a fixed order; options that are left at their neutral
default add nothing:

    repetition_penalty != 1.0       RepetitionPenaltyRule
    no_repeat_ngram_size > 0        NoRepeatNGramRule
    min_length > 0 and eos_token_id MinLengthRule
    forced_bos_token_id             ForcedBOSTokenRule
    forced_eos_token_id             ForcedEOSTokenRule
    remove_invalid_values           InfNanRemoveRule
    suppress_tokens                 SuppressTokensRule
    begin_suppress_tokens           SuppressTokensAtBeginRule
    forced_decoder_ids              ForceTokensRule
    return_timestamps               TimestampRule

Usage:
    ```python
    from logit_guard.config import GenerationConfig
    from logit_guard.processing import build_rule_chain

    config = GenerationConfig(repetition_penalty=1.3, no_repeat_ngram_size=2)
    chain = build_rule_chain(config, vocab_size=32000)
    chain.apply_batch(histories, scores)
    ```
"""

import logging
from typing import List, Optional

from logit_guard.config import GenerationConfig
from logit_guard.processing.base import LogitsRule
from logit_guard.processing.force import (
    ForcedBOSTokenRule,
    ForcedEOSTokenRule,
    ForceTokensRule,
)
from logit_guard.processing.repetition import NoRepeatNGramRule, RepetitionPenaltyRule
from logit_guard.processing.rule_chain import LogitsRuleChain
from logit_guard.processing.suppress import (
    InfNanRemoveRule,
    MinLengthRule,
    SuppressTokensAtBeginRule,
    SuppressTokensRule,
)
from logit_guard.processing.timestamps import TimestampRule

logger = logging.getLogger(__name__)


def begin_generation_index(config: GenerationConfig) -> int:
    """
    History length of the first step that is not forced.

    A forced BOS takes the step after the decoder start token, and
    forced_decoder_ids push the index past their last pair.

    Returns:
        int: 1 (or 2 with a forced BOS) plus the step of the last forced pair
    """
    begin_index = 1 if config.forced_bos_token_id is None else 2
    if config.forced_decoder_ids:
        begin_index += config.forced_decoder_ids[-1][0]
    return begin_index


def build_rules(config: GenerationConfig) -> List[LogitsRule]:
    """
    Instantiate the rules enabled by ``config``, in application order.

    Raises:
        InvalidConfigurationError: If an enabled rule rejects its options
    """
    rules: List[LogitsRule] = []

    if config.repetition_penalty != 1.0:
        rules.append(RepetitionPenaltyRule(config.repetition_penalty))
    if config.no_repeat_ngram_size > 0:
        rules.append(NoRepeatNGramRule(config.no_repeat_ngram_size))
    if config.min_length > 0 and config.eos_token_id is not None:
        rules.append(MinLengthRule(config.min_length, config.eos_token_id))
    if config.forced_bos_token_id is not None:
        rules.append(ForcedBOSTokenRule(config.forced_bos_token_id))
    if config.forced_eos_token_id is not None:
        rules.append(ForcedEOSTokenRule(config.max_length, config.forced_eos_token_id))
    if config.remove_invalid_values:
        rules.append(InfNanRemoveRule())
    if config.suppress_tokens:
        rules.append(SuppressTokensRule(config.suppress_tokens))
    if config.begin_suppress_tokens:
        rules.append(SuppressTokensAtBeginRule(
            config.begin_suppress_tokens,
            begin_generation_index(config)
        ))
    if config.forced_decoder_ids:
        rules.append(ForceTokensRule(config.forced_decoder_ids))
    if config.return_timestamps:
        rules.append(TimestampRule.from_config(config))

    return rules


def build_rule_chain(
    config: GenerationConfig,
    vocab_size: Optional[int] = None,
    shared_history: bool = False
) -> LogitsRuleChain:
    """
    Build the Rule Chain for one generation request.

    Args:
        config: Validated generation config
        vocab_size: Expected score buffer length (None to skip the check)
        shared_history: Legacy single-history mode, see LogitsRuleChain

    Returns:
        LogitsRuleChain: Chain holding the enabled rules
    """
    chain = LogitsRuleChain(
        build_rules(config),
        vocab_size=vocab_size,
        shared_history=shared_history
    )

    if len(chain):
        logger.info(f"Built rule chain: {', '.join(type(rule).__name__ for rule in chain)}")
    else:
        logger.info("Built empty rule chain (every rule option is at its default)")

    return chain
