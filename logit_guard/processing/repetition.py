"""
Repetition rules - discourage or forbid repeating earlier tokens.

RepetitionPenaltyRule:
    Rescales the score of every token already present in the history.
    Negative scores are multiplied by the penalty, non-negative scores are
    divided by it, so with penalty > 1 both become less likely. Each distinct
    token is penalised once per step no matter how often it occurs.

NoRepeatNGramRule:
    Bans any token that would complete an n-gram already present in the
    history.

N-gram Bookkeeping (n = 2, history = [5, 3, 5, 3]):
    windows:   (5, 3), (3, 5), (5, 3)
    grouped:   {(5,): [3, 3], (3,): [5]}
    prefix:    (3,)  (last n-1 tokens)
    banned:    [5]
"""

import logging
from typing import Dict, List, Sequence, Tuple

import torch
from torch import Tensor

from logit_guard.errors import InvalidConfigurationError
from logit_guard.processing.base import (
    LogitsRule,
    TokenHistory,
    as_token_list,
    check_scores,
    check_token_ids,
    suppress,
)

logger = logging.getLogger(__name__)


class RepetitionPenaltyRule(LogitsRule):
    """
    Penalise tokens that already appear in the history.

    A penalty of 1.0 is a no-op. Values above 1.0 discourage repetition,
    values between 0.0 and 1.0 encourage it.

    Attributes:
        penalty: Strictly positive penalty factor
    """

    def __init__(self, penalty: float):
        """
        Initialize RepetitionPenaltyRule.

        Args:
            penalty: Repetition penalty factor

        Raises:
            InvalidConfigurationError: If penalty is not a strictly positive number
        """
        if isinstance(penalty, bool) or not isinstance(penalty, (int, float)) or not (penalty > 0):
            raise InvalidConfigurationError(
                f"`penalty` has to be a strictly positive float, but is {penalty!r}"
            )
        self.penalty = float(penalty)

    def __call__(self, input_ids: TokenHistory, scores: Tensor) -> Tensor:
        check_scores(scores, self)

        # Distinct ids only: a token seen three times is still penalised once
        token_ids = sorted(set(as_token_list(input_ids)))
        if not token_ids:
            return scores
        check_token_ids(scores, token_ids, self)

        index = torch.tensor(token_ids, dtype=torch.long, device=scores.device)
        score = scores[index]
        scores[index] = torch.where(score < 0, score * self.penalty, score / self.penalty)

        logger.debug(f"Applied repetition penalty {self.penalty} to {len(token_ids)} token(s)")
        return scores

    def __repr__(self) -> str:
        return f"RepetitionPenaltyRule(penalty={self.penalty})"


def get_ngrams(ngram_size: int, tokens: Sequence[int]) -> Dict[Tuple[int, ...], List[int]]:
    """
    Group every n-gram of ``tokens`` by its first n-1 tokens.

    Args:
        ngram_size: Length of the n-grams
        tokens: Token history

    Returns:
        Dict mapping prefix tuple -> tokens that followed it, in order

    Example:
        ```python
        get_ngrams(2, [40, 2883, 2712, 4346])
        # {(40,): [2883], (2883,): [2712], (2712,): [4346]}
        ```
    """
    generated_ngrams: Dict[Tuple[int, ...], List[int]] = {}
    for ngram in zip(*[tokens[i:] for i in range(ngram_size)]):
        prefix = tuple(ngram[:-1])
        generated_ngrams.setdefault(prefix, []).append(ngram[-1])
    return generated_ngrams


def get_banned_ngram_tokens(
    generated_ngrams: Dict[Tuple[int, ...], List[int]],
    tokens: Sequence[int],
    ngram_size: int
) -> List[int]:
    """Look up the tokens that followed the current n-1 token prefix."""
    cur_len = len(tokens)
    start_idx = cur_len + 1 - ngram_size
    prefix = tuple(tokens[start_idx:cur_len])
    return generated_ngrams.get(prefix, [])


def calc_banned_ngram_tokens(ngram_size: int, tokens: Sequence[int]) -> List[int]:
    """
    Compute the tokens that would repeat an n-gram of ``tokens``.

    Args:
        ngram_size: Length of the n-grams that may occur only once
        tokens: Token history

    Returns:
        List of banned token ids (may contain duplicates)
    """
    if len(tokens) + 1 < ngram_size:
        # Not enough history to complete a single n-gram yet
        return []

    generated_ngrams = get_ngrams(ngram_size, tokens)
    return get_banned_ngram_tokens(generated_ngrams, tokens, ngram_size)


class NoRepeatNGramRule(LogitsRule):
    """
    Forbid n-grams of size ``ngram_size`` from occurring twice.

    Attributes:
        ngram_size: N-gram length (>= 1). With 1 every previously emitted
            token is banned.
    """

    def __init__(self, ngram_size: int):
        if isinstance(ngram_size, bool) or not isinstance(ngram_size, int) or ngram_size < 1:
            raise InvalidConfigurationError(
                f"`ngram_size` has to be a strictly positive integer, but is {ngram_size!r}"
            )
        self.ngram_size = ngram_size

    def __call__(self, input_ids: TokenHistory, scores: Tensor) -> Tensor:
        check_scores(scores, self)

        tokens = as_token_list(input_ids)
        banned_tokens = calc_banned_ngram_tokens(self.ngram_size, tokens)
        if banned_tokens:
            check_token_ids(scores, banned_tokens, self)
            suppress(scores, banned_tokens)
            logger.debug(f"Banned {sorted(set(banned_tokens))} to avoid repeating a {self.ngram_size}-gram")

        return scores

    def __repr__(self) -> str:
        return f"NoRepeatNGramRule(ngram_size={self.ngram_size})"
