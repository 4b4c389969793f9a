"""
Rule Chain - ordered list of rules applied to every row of a batch.

The decoding loop calls the chain once per step with the token history of
each row and the raw scores of each row. Every rule runs in insertion order
on the same buffer, so a later rule sees what earlier rules wrote.

Flow (per decoding step):
    1. Model produces scores of shape (batch_size, vocab_size)
    2. chain.apply_batch(histories, scores) is called
    3. For each row i, each rule mutates scores[i] in place
    4. Search strategy picks the next token(s) from the mutated scores

Usage:
    ```python
    import torch
    from logit_guard.processing import (
        LogitsRuleChain,
        NoRepeatNGramRule,
        RepetitionPenaltyRule,
    )

    chain = LogitsRuleChain()
    chain.push(RepetitionPenaltyRule(1.2))
    chain.push(NoRepeatNGramRule(3))

    histories = [[0, 12, 7], [0, 12, 9]]
    scores = torch.randn(2, vocab_size)
    chain.apply_batch(histories, scores)  # scores mutated in place
    ```
"""

import logging
from typing import Iterable, Iterator, List, Optional, Sequence, Union

from torch import Tensor

from logit_guard.errors import InvalidConfigurationError, ShapeMismatchError
from logit_guard.processing.base import LogitsRule, TokenHistory

logger = logging.getLogger(__name__)

BatchScores = Union[Tensor, Sequence[Tensor]]


class LogitsRuleChain:
    """
    Ordered collection of rules applied row by row.

    Attributes:
        rules: Rules in application order (duplicates allowed)
        vocab_size: Expected score buffer length, checked on every row if set
        shared_history: Apply one history to every row instead of one
            history per row. This reproduces older decoders that passed a
            single history for the whole batch; it is wrong as soon as rows
            diverge (beam search, multiple return sequences).
    """

    def __init__(
        self,
        rules: Optional[Iterable[LogitsRule]] = None,
        vocab_size: Optional[int] = None,
        shared_history: bool = False
    ):
        """
        Initialize LogitsRuleChain.

        Args:
            rules: Initial rules, in order
            vocab_size: Expected vocabulary size (None to skip the check)
            shared_history: Legacy single-history mode
        """
        self.rules: List[LogitsRule] = []
        self.vocab_size = vocab_size
        self.shared_history = shared_history

        if rules is not None:
            self.extend(rules)

    def push(self, rule: LogitsRule) -> None:
        """
        Append one rule to the end of the chain.

        Raises:
            InvalidConfigurationError: If ``rule`` is not a LogitsRule
        """
        if not isinstance(rule, LogitsRule):
            raise InvalidConfigurationError(
                f"Only LogitsRule instances can be added to a chain, got {type(rule).__name__}"
            )
        self.rules.append(rule)

    def extend(self, rules: Iterable[LogitsRule]) -> None:
        """Append several rules, keeping their relative order."""
        for rule in rules:
            self.push(rule)

    def apply_batch(self, histories: Union[TokenHistory, Sequence[TokenHistory]], scores: BatchScores) -> BatchScores:
        """
        Apply every rule, in order, to every row of the batch.

        Args:
            histories: One token history per row (list of lists or 2-D
                LongTensor). In shared_history mode, a single history.
            scores: 2-D tensor (batch_size, vocab_size) or a list of 1-D
                tensors. Mutated in place.

        Returns:
            The same ``scores`` object

        Raises:
            ShapeMismatchError: If the number of histories does not match the
                number of rows, or a row has the wrong vocabulary size
            RuleNotImplementedError: If a rule has no concrete implementation
        """
        rows = self._rows(scores)

        if self.shared_history:
            row_histories = [histories] * len(rows)
        else:
            row_histories = list(histories)
            if len(row_histories) != len(rows):
                raise ShapeMismatchError(
                    f"Got {len(row_histories)} token histories for {len(rows)} score rows"
                )

        for row_index, (history, row_scores) in enumerate(zip(row_histories, rows)):
            if self.vocab_size is not None and row_scores.shape[-1] != self.vocab_size:
                raise ShapeMismatchError(
                    f"Row {row_index} has {row_scores.shape[-1]} scores, "
                    f"expected vocab_size={self.vocab_size}"
                )

            for rule in self.rules:
                # Rules mutate row_scores in place; a view of a 2-D batch
                # writes straight through to the batch tensor
                rule(history, row_scores)

        logger.debug(f"Applied {len(self.rules)} rule(s) to {len(rows)} row(s)")
        return scores

    def __call__(self, histories: Union[TokenHistory, Sequence[TokenHistory]], scores: BatchScores) -> BatchScores:
        """Alias for apply_batch."""
        return self.apply_batch(histories, scores)

    @staticmethod
    def _rows(scores: BatchScores) -> List[Tensor]:
        if isinstance(scores, Tensor):
            if scores.dim() != 2:
                raise ShapeMismatchError(
                    f"Batched scores must be 2-D (batch_size, vocab_size), got shape {tuple(scores.shape)}"
                )
            return [scores[i] for i in range(scores.shape[0])]
        return list(scores)

    def __iter__(self) -> Iterator[LogitsRule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def __getitem__(self, index: int) -> LogitsRule:
        return self.rules[index]

    def __repr__(self) -> str:
        return f"LogitsRuleChain({len(self.rules)} rules)"
