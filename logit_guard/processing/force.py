"""
Forcing rules - make one token certain at a given decoding step.

All three rules share the same two-step operation: fill the whole score
buffer with -inf, then restore the forced token to 0. After log-softmax the
forced token has probability 1 and every other token probability 0.

    ForceTokensRule      step -> token map, triggered by history length
    ForcedBOSTokenRule   forces bos_token_id when history length == 1
    ForcedEOSTokenRule   forces eos_token_id when history length == max_length - 1

Usage:
    ```python
    from logit_guard.processing import ForceTokensRule

    # Whisper-style prompt: language at step 1, task at step 2
    rule = ForceTokensRule([[1, 50259], [2, 50359]])
    rule([50258], scores)  # forces 50259
    ```
"""

import logging
from typing import Dict, Iterable, Optional, Sequence, Union

from torch import Tensor

from logit_guard.errors import InvalidConfigurationError
from logit_guard.processing.base import (
    LogitsRule,
    TokenHistory,
    check_scores,
    check_token_ids,
    force_tokens,
    history_length,
    validate_token_id,
    validate_token_ids,
)

logger = logging.getLogger(__name__)


class ForceTokensRule(LogitsRule):
    """
    Force a specific token at specific decoding steps.

    The step index is the length of the token history at call time, so a
    pair ``(1, 50259)`` forces token 50259 right after the decoder start
    token has been emitted.

    Attributes:
        force_token_map: Dict mapping step index -> forced token id
    """

    def __init__(self, forced_decoder_ids: Optional[Iterable[Sequence[int]]] = None):
        """
        Initialize ForceTokensRule.

        Args:
            forced_decoder_ids: List of (step, token_id) pairs. None means
                nothing is forced.

        Raises:
            InvalidConfigurationError: If a pair is malformed
        """
        self.force_token_map: Dict[int, int] = {}

        for pair in forced_decoder_ids or []:
            if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                raise InvalidConfigurationError(
                    f"`forced_decoder_ids` entries must be (step, token) pairs, got {pair!r}"
                )
            step, token_id = validate_token_ids("forced_decoder_ids", pair)
            self.force_token_map[step] = token_id

    def __call__(self, input_ids: TokenHistory, scores: Tensor) -> Tensor:
        check_scores(scores, self)

        step = history_length(input_ids)
        token_id = self.force_token_map.get(step)
        if token_id is not None:
            check_token_ids(scores, [token_id], self)
            force_tokens(scores, [token_id])
            logger.debug(f"Forced token {token_id} at step {step}")

        return scores

    def __repr__(self) -> str:
        return f"ForceTokensRule(force_token_map={self.force_token_map})"


class ForcedBOSTokenRule(LogitsRule):
    """
    Force ``bos_token_id`` as the first generated token.

    Triggers when exactly one token (the decoder start token) is in the
    history. Used with encoder-decoder models.
    """

    def __init__(self, bos_token_id: int):
        self.bos_token_id = validate_token_id("forced_bos_token_id", bos_token_id)

    def __call__(self, input_ids: TokenHistory, scores: Tensor) -> Tensor:
        check_scores(scores, self)

        if history_length(input_ids) == 1:
            check_token_ids(scores, [self.bos_token_id], self)
            force_tokens(scores, [self.bos_token_id])
            logger.debug(f"Forced BOS token {self.bos_token_id}")

        return scores

    def __repr__(self) -> str:
        return f"ForcedBOSTokenRule(bos_token_id={self.bos_token_id})"


class ForcedEOSTokenRule(LogitsRule):
    """
    Force the end-of-sequence token when ``max_length`` is about to be reached.

    When the history holds ``max_length - 1`` tokens the next token is the
    last one the length budget allows, so it must be EOS. If several EOS ids
    are given, all of them are restored to 0 and the search strategy picks
    among them.

    Attributes:
        max_length: Maximum sequence length (history included)
        eos_token_ids: Tuple of EOS token ids to force
    """

    def __init__(self, max_length: int, eos_token_id: Union[int, Sequence[int]]):
        """
        Initialize ForcedEOSTokenRule.

        Args:
            max_length: Maximum length of the generated sequence
            eos_token_id: EOS token id, or a list of ids

        Raises:
            InvalidConfigurationError: If max_length < 1 or an id is invalid
        """
        if isinstance(max_length, bool) or not isinstance(max_length, int) or max_length < 1:
            raise InvalidConfigurationError(
                f"`max_length` has to be a strictly positive integer, but is {max_length!r}"
            )

        self.max_length = max_length
        self.eos_token_ids = validate_token_ids("forced_eos_token_id", eos_token_id)
        if not self.eos_token_ids:
            raise InvalidConfigurationError("`forced_eos_token_id` must not be empty")

    def __call__(self, input_ids: TokenHistory, scores: Tensor) -> Tensor:
        check_scores(scores, self)

        if history_length(input_ids) == self.max_length - 1:
            check_token_ids(scores, self.eos_token_ids, self)
            force_tokens(scores, self.eos_token_ids)
            logger.debug(
                f"Forced EOS token(s) {list(self.eos_token_ids)} at max_length={self.max_length}"
            )

        return scores

    def __repr__(self) -> str:
        return (
            f"ForcedEOSTokenRule(max_length={self.max_length}, "
            f"eos_token_ids={list(self.eos_token_ids)})"
        )
