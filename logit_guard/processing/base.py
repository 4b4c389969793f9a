"""
Rule base class and score buffer helpers.

A rule (logits processor) inspects the token history of one generation row
and mutates that row's score buffer in place. The buffer is a 1-D float
tensor with one entry per vocabulary token; setting an entry to -inf rules
the token out, setting it to 0 while every other entry is -inf makes it
certain after softmax.

Rule Protocol:
    __call__(input_ids: Sequence[int], scores: Tensor) -> Tensor

    - input_ids: token history of the row (list of ints or 1-D LongTensor)
    - scores: 1-D tensor of shape (vocab_size,), mutated in place
    - returns the same tensor object it was given

Example:
    ```python
    import torch
    from logit_guard.processing import ForcedBOSTokenRule

    rule = ForcedBOSTokenRule(bos_token_id=3)
    scores = torch.zeros(10)
    rule([0], scores)
    # scores[3] == 0, every other entry is -inf
    ```
"""

import logging
from typing import Iterable, List, Sequence, Union

from torch import Tensor

from logit_guard.errors import (
    InvalidConfigurationError,
    RuleNotImplementedError,
    ShapeMismatchError,
)

logger = logging.getLogger(__name__)

NEG_INF = float("-inf")

TokenHistory = Union[Sequence[int], Tensor]


class LogitsRule:
    """
    Base class for all rules that can be applied during generation.

    Subclasses override ``__call__``. The base implementation raises
    RuleNotImplementedError so a mis-registered rule fails loudly instead of
    passing scores through untouched.
    """

    def __call__(self, input_ids: TokenHistory, scores: Tensor) -> Tensor:
        raise RuleNotImplementedError(
            f"{self.__class__.__name__} is an abstract rule. "
            f"Only subclasses implementing __call__ can be applied."
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def as_token_list(input_ids: TokenHistory) -> List[int]:
    """
    Convert a token history to a plain list of ints.

    Args:
        input_ids: List/tuple of ints or a 1-D integer tensor

    Returns:
        List[int]: Copy of the history
    """
    if isinstance(input_ids, Tensor):
        if input_ids.dim() != 1:
            raise ShapeMismatchError(
                f"Token history must be 1-D, got shape {tuple(input_ids.shape)}"
            )
        return input_ids.tolist()
    return [int(token) for token in input_ids]


def history_length(input_ids: TokenHistory) -> int:
    """Number of tokens in a history (the current decoding step index)."""
    if isinstance(input_ids, Tensor):
        return input_ids.shape[-1]
    return len(input_ids)


def check_scores(scores: Tensor, rule: LogitsRule) -> int:
    """
    Check that ``scores`` is a single row score buffer.

    Args:
        scores: Score buffer
        rule: Rule about to touch the buffer (for the error message)

    Returns:
        int: Vocabulary size (length of the buffer)

    Raises:
        ShapeMismatchError: If scores is not a 1-D tensor
    """
    if not isinstance(scores, Tensor):
        raise ShapeMismatchError(
            f"{rule!r} expects a torch.Tensor score buffer, got {type(scores).__name__}"
        )
    if scores.dim() != 1:
        raise ShapeMismatchError(
            f"{rule!r} expects a 1-D score buffer, got shape {tuple(scores.shape)}"
        )
    return scores.shape[0]


def check_token_ids(scores: Tensor, token_ids: Iterable[int], rule: LogitsRule) -> None:
    """
    Check that every token id a rule writes lies inside the score buffer.

    Raises:
        ShapeMismatchError: If a token id is negative or the buffer is too small
    """
    vocab_size = check_scores(scores, rule)
    for token_id in token_ids:
        if token_id < 0:
            raise ShapeMismatchError(f"{rule!r} got negative token id {token_id}")
        if token_id >= vocab_size:
            raise ShapeMismatchError(
                f"{rule!r} touches token {token_id} but the score buffer "
                f"only has {vocab_size} entries"
            )


def force_tokens(scores: Tensor, token_ids: Sequence[int]) -> Tensor:
    """
    Suppress every entry, then restore ``token_ids`` to 0 (certainty).

    Args:
        scores: 1-D score buffer, mutated in place
        token_ids: Token ids to force

    Returns:
        Tensor: The same buffer
    """
    scores.fill_(NEG_INF)
    scores[list(token_ids)] = 0.0
    return scores


def to_id_tuple(token_ids: Union[int, Iterable[int], None]) -> tuple:
    """Normalize an int, an iterable of ints, or None to a tuple of ints."""
    if token_ids is None:
        return ()
    if isinstance(token_ids, Tensor):
        return tuple(token_ids.flatten().tolist())
    if isinstance(token_ids, int):
        return (token_ids,)
    return tuple(token_ids)


def validate_token_ids(name: str, token_ids: Union[int, Iterable[int], None]) -> tuple:
    """
    Normalize token ids and reject anything that is not a non-negative int.

    Args:
        name: Option name used in the error message
        token_ids: Token id(s) to validate

    Returns:
        tuple: Normalized token ids

    Raises:
        InvalidConfigurationError: If an id is missing, negative, or not an int
    """
    if token_ids is None:
        raise InvalidConfigurationError(f"`{name}` is required")

    try:
        ids = to_id_tuple(token_ids)
    except (TypeError, ValueError):
        raise InvalidConfigurationError(
            f"`{name}` must be an int or a list of ints, got {token_ids!r}"
        )

    for token_id in ids:
        if isinstance(token_id, bool) or not isinstance(token_id, int) or token_id < 0:
            raise InvalidConfigurationError(
                f"`{name}` must contain non-negative integers, got {token_ids!r}"
            )
    return ids


def validate_token_id(name: str, token_id: int) -> int:
    """Validate a single non-negative token id."""
    ids = validate_token_ids(name, token_id)
    if len(ids) != 1:
        raise InvalidConfigurationError(f"`{name}` must be a single token id, got {token_id!r}")
    return ids[0]


def suppress(scores: Tensor, token_ids: Sequence[int]) -> Tensor:
    """Set the entries for ``token_ids`` to -inf."""
    if token_ids:
        scores[list(token_ids)] = NEG_INF
    return scores


__all__ = [
    "LogitsRule",
    "NEG_INF",
    "TokenHistory",
    "as_token_list",
    "check_scores",
    "check_token_ids",
    "force_tokens",
    "history_length",
    "suppress",
    "to_id_tuple",
    "validate_token_id",
    "validate_token_ids",
]
