"""
Suppression rules driven by generation config options.

    MinLengthRule               min_length           blocks EOS until the history is long enough
    SuppressTokensRule          suppress_tokens      always blocks the listed tokens
    SuppressTokensAtBeginRule   begin_suppress_tokens  blocks the listed tokens at the first free step
    InfNanRemoveRule            remove_invalid_values  replaces nan/inf with finite values
"""

import logging
from typing import Iterable, Sequence, Union

import torch
from torch import Tensor

from logit_guard.errors import InvalidConfigurationError
from logit_guard.processing.base import (
    LogitsRule,
    TokenHistory,
    check_scores,
    check_token_ids,
    history_length,
    suppress,
    validate_token_ids,
)

logger = logging.getLogger(__name__)


class MinLengthRule(LogitsRule):
    """
    Set EOS probability to 0 until the history reaches ``min_length`` tokens.

    Attributes:
        min_length: Minimum sequence length (history included)
        eos_token_ids: EOS token ids to block
    """

    def __init__(self, min_length: int, eos_token_id: Union[int, Sequence[int]]):
        if isinstance(min_length, bool) or not isinstance(min_length, int) or min_length < 0:
            raise InvalidConfigurationError(
                f"`min_length` has to be a non-negative integer, but is {min_length!r}"
            )
        self.min_length = min_length
        self.eos_token_ids = validate_token_ids("eos_token_id", eos_token_id)

    def __call__(self, input_ids: TokenHistory, scores: Tensor) -> Tensor:
        check_scores(scores, self)

        if history_length(input_ids) < self.min_length:
            check_token_ids(scores, self.eos_token_ids, self)
            suppress(scores, self.eos_token_ids)

        return scores

    def __repr__(self) -> str:
        return f"MinLengthRule(min_length={self.min_length}, eos_token_ids={list(self.eos_token_ids)})"


class SuppressTokensRule(LogitsRule):
    """Set the score of every listed token to -inf at every step."""

    def __init__(self, suppress_tokens: Iterable[int]):
        self.suppress_tokens = validate_token_ids("suppress_tokens", suppress_tokens)

    def __call__(self, input_ids: TokenHistory, scores: Tensor) -> Tensor:
        check_token_ids(scores, self.suppress_tokens, self)
        return suppress(scores, self.suppress_tokens)

    def __repr__(self) -> str:
        return f"SuppressTokensRule(suppress_tokens={list(self.suppress_tokens)})"


class SuppressTokensAtBeginRule(LogitsRule):
    """
    Suppress tokens only at the first freely generated step.

    Whisper uses this to keep the model from emitting a blank or EOS as its
    first token.

    Attributes:
        begin_suppress_tokens: Token ids to suppress
        begin_index: History length of the first free step
    """

    def __init__(self, begin_suppress_tokens: Iterable[int], begin_index: int):
        self.begin_suppress_tokens = validate_token_ids("begin_suppress_tokens", begin_suppress_tokens)
        if isinstance(begin_index, bool) or not isinstance(begin_index, int) or begin_index < 0:
            raise InvalidConfigurationError(
                f"`begin_index` has to be a non-negative integer, but is {begin_index!r}"
            )
        self.begin_index = begin_index

    def __call__(self, input_ids: TokenHistory, scores: Tensor) -> Tensor:
        check_scores(scores, self)

        if history_length(input_ids) == self.begin_index:
            check_token_ids(scores, self.begin_suppress_tokens, self)
            suppress(scores, self.begin_suppress_tokens)

        return scores

    def __repr__(self) -> str:
        return (
            f"SuppressTokensAtBeginRule(begin_suppress_tokens={list(self.begin_suppress_tokens)}, "
            f"begin_index={self.begin_index})"
        )


class InfNanRemoveRule(LogitsRule):
    """
    Replace nan with 0 and +/-inf with the largest finite values of the dtype.

    Only useful as a guard against a broken model; it slows every step down.
    """

    def __call__(self, input_ids: TokenHistory, scores: Tensor) -> Tensor:
        check_scores(scores, self)

        finfo = torch.finfo(scores.dtype)
        scores.nan_to_num_(nan=0.0, posinf=finfo.max, neginf=finfo.min)
        return scores
