"""
Timestamp rule for speech transcription decoding.

Speech models such as Whisper interleave text tokens with timestamp tokens.
Every vocabulary id at or above ``timestamp_begin`` (the id right after
``<|notimestamps|>``) is a timestamp. This rule keeps the generated sequence
well formed:

    <|startoftranscript|> <|en|> <|transcribe|>   forced prefix
    <|0.00|> text text text <|2.40|>              segment
    <|2.40|> text text <|5.00|>                   segment
    <|endoftext|>

State machine (driven only by the history length and the class of the last
two tokens after the forced prefix):

    before-forced-prefix   len(history) < begin_index - 1: only
                           <|notimestamps|> is suppressed
    first-free-token       len(history) == begin_index - 1: the first
                           timestamp is forced
    steady-state-pairing   timestamps come in pairs, except right before EOS:
                           ts ts   -> next must be text
                           txt ts  -> next must be a timestamp or EOS

After the pairing masks, if the total probability of all timestamps beats
the single most likely text token, every text token is suppressed.

Usage:
    ```python
    from logit_guard.processing import TimestampRule

    rule = TimestampRule(
        eos_token_id=50257,
        no_timestamps_token_id=50363,
        forced_decoder_ids=[[1, 50259], [2, 50359]],
        max_initial_timestamp_index=50,
    )
    rule(history, scores)
    ```
"""

import logging
from typing import Any, Optional, Sequence

import torch
from torch import Tensor

from logit_guard.errors import InvalidConfigurationError
from logit_guard.processing.base import (
    NEG_INF,
    LogitsRule,
    TokenHistory,
    as_token_list,
    check_token_ids,
    force_tokens,
    validate_token_id,
)

logger = logging.getLogger(__name__)


class TimestampRule(LogitsRule):
    """
    Enforce timestamp pairing and timestamp preference during transcription.

    Attributes:
        eos_token_id: End-of-sequence token id
        no_timestamps_token_id: Id of the ``<|notimestamps|>`` token
        timestamp_begin: First timestamp token id (no_timestamps_token_id + 1)
        begin_index: History length at which free generation starts
        max_initial_timestamp_index: Latest allowed first timestamp, counted
            from timestamp_begin (None for no limit)
    """

    def __init__(
        self,
        eos_token_id: int,
        no_timestamps_token_id: int,
        forced_decoder_ids: Sequence[Sequence[int]],
        max_initial_timestamp_index: Optional[int] = None
    ):
        """
        Initialize TimestampRule.

        Args:
            eos_token_id: End-of-sequence token id
            no_timestamps_token_id: Id of the ``<|notimestamps|>`` token
            forced_decoder_ids: (step, token) pairs forced before free
                generation starts; must not be empty
            max_initial_timestamp_index: Bound on the first timestamp

        Raises:
            InvalidConfigurationError: If a required option is missing or invalid
        """
        self.eos_token_id = validate_token_id("eos_token_id", eos_token_id)
        self.no_timestamps_token_id = validate_token_id("no_timestamps_token_id", no_timestamps_token_id)

        if not forced_decoder_ids:
            raise InvalidConfigurationError(
                "`forced_decoder_ids` is required to locate the first generated token "
                "for timestamp decoding"
            )
        last_pair = forced_decoder_ids[-1]
        if not isinstance(last_pair, (list, tuple)) or len(last_pair) != 2:
            raise InvalidConfigurationError(
                f"`forced_decoder_ids` entries must be (step, token) pairs, got {last_pair!r}"
            )

        if max_initial_timestamp_index is not None:
            if (
                isinstance(max_initial_timestamp_index, bool)
                or not isinstance(max_initial_timestamp_index, int)
                or max_initial_timestamp_index < 0
            ):
                raise InvalidConfigurationError(
                    f"`max_initial_timestamp_index` must be a non-negative integer, "
                    f"got {max_initial_timestamp_index!r}"
                )

        self.timestamp_begin = self.no_timestamps_token_id + 1

        self.begin_index = len(forced_decoder_ids) + 2
        if last_pair[1] == self.no_timestamps_token_id:
            self.begin_index -= 1

        self.max_initial_timestamp_index = max_initial_timestamp_index

        logger.debug(
            f"TimestampRule initialized (timestamp_begin={self.timestamp_begin}, "
            f"begin_index={self.begin_index}, eos={self.eos_token_id})"
        )

    @classmethod
    def from_config(cls, config: Any) -> "TimestampRule":
        """
        Build the rule from a generation config.

        Args:
            config: GenerationConfig (or any object with the same attributes)

        Returns:
            TimestampRule
        """
        return cls(
            eos_token_id=getattr(config, "eos_token_id", None),
            no_timestamps_token_id=getattr(config, "no_timestamps_token_id", None),
            forced_decoder_ids=getattr(config, "forced_decoder_ids", None),
            max_initial_timestamp_index=getattr(config, "max_initial_timestamp_index", None)
        )

    def __call__(self, input_ids: TokenHistory, scores: Tensor) -> Tensor:
        check_token_ids(scores, [self.no_timestamps_token_id, self.eos_token_id], self)

        # <|notimestamps|> is only valid inside the forced prefix
        scores[self.no_timestamps_token_id] = NEG_INF

        tokens = as_token_list(input_ids)
        cur_len = len(tokens)

        if cur_len == self.begin_index - 1:
            check_token_ids(scores, [self.timestamp_begin], self)
            force_tokens(scores, [self.timestamp_begin])
            logger.debug(f"Forced initial timestamp {self.timestamp_begin} at step {cur_len}")
            return scores

        # Timestamps have to appear in pairs, except directly before EOS
        seq = tokens[self.begin_index:]
        last_was_timestamp = len(seq) >= 1 and seq[-1] >= self.timestamp_begin
        penultimate_was_timestamp = len(seq) < 2 or seq[-2] >= self.timestamp_begin

        if last_was_timestamp:
            if penultimate_was_timestamp:
                scores[self.timestamp_begin:] = NEG_INF
            else:
                scores[:self.eos_token_id] = NEG_INF

        if cur_len == self.begin_index and self.max_initial_timestamp_index is not None:
            last_allowed = self.timestamp_begin + self.max_initial_timestamp_index
            scores[last_allowed + 1:] = NEG_INF

        # If the timestamps together are more likely than any text token, pick a timestamp
        logprobs = torch.log_softmax(scores.float(), dim=-1)
        timestamp_logprob = torch.logsumexp(logprobs[self.timestamp_begin:], dim=-1)
        max_text_token_logprob = logprobs[:self.timestamp_begin].max()
        if timestamp_logprob > max_text_token_logprob:
            scores[:self.timestamp_begin] = NEG_INF
            logger.debug(
                f"Timestamp mass {timestamp_logprob.item():.3f} beats best text token "
                f"{max_text_token_logprob.item():.3f}, suppressed text tokens"
            )

        return scores

    def __repr__(self) -> str:
        return (
            f"TimestampRule(eos_token_id={self.eos_token_id}, "
            f"no_timestamps_token_id={self.no_timestamps_token_id}, "
            f"begin_index={self.begin_index}, "
            f"max_initial_timestamp_index={self.max_initial_timestamp_index})"
        )
