"""
Unit tests for the timestamp rule.

Vocabulary used throughout:
    0-4   text tokens
    5     <|endoftext|>
    6     <|notimestamps|>
    7-11  timestamps
"""

import pytest
import torch

from logit_guard.config import GenerationConfig
from logit_guard.errors import InvalidConfigurationError, ShapeMismatchError
from logit_guard.processing import TimestampRule

NEG_INF = float("-inf")
VOCAB_SIZE = 12
EOS = 5
NO_TIMESTAMPS = 6
TIMESTAMP_BEGIN = 7
FORCED = [[1, 2], [2, 3]]


@pytest.fixture
def rule():
    """TimestampRule with begin_index 4."""
    return TimestampRule(
        eos_token_id=EOS,
        no_timestamps_token_id=NO_TIMESTAMPS,
        forced_decoder_ids=FORCED
    )


def text_favoured_scores():
    """Scores where text token 1 clearly beats every timestamp."""
    scores = torch.zeros(VOCAB_SIZE)
    scores[1] = 10.0
    return scores


class TestTimestampRuleConstruction:
    """Test derived indices and option checks."""

    def test_derived_indices(self, rule):
        """Test timestamp_begin and begin_index."""
        assert rule.timestamp_begin == TIMESTAMP_BEGIN
        assert rule.begin_index == 4

    def test_begin_index_when_last_forced_is_no_timestamps(self):
        """Test that a forced <|notimestamps|> shortens the prefix by one."""
        rule = TimestampRule(
            eos_token_id=EOS,
            no_timestamps_token_id=NO_TIMESTAMPS,
            forced_decoder_ids=[[1, 2], [2, NO_TIMESTAMPS]]
        )

        assert rule.begin_index == 3

    @pytest.mark.parametrize("forced", [None, []])
    def test_missing_forced_decoder_ids_raises(self, forced):
        """Test that forced_decoder_ids is required."""
        with pytest.raises(InvalidConfigurationError):
            TimestampRule(eos_token_id=EOS, no_timestamps_token_id=NO_TIMESTAMPS, forced_decoder_ids=forced)

    def test_missing_token_ids_raise(self):
        """Test that eos and no_timestamps ids are required."""
        with pytest.raises(InvalidConfigurationError):
            TimestampRule(eos_token_id=None, no_timestamps_token_id=NO_TIMESTAMPS, forced_decoder_ids=FORCED)

        with pytest.raises(InvalidConfigurationError):
            TimestampRule(eos_token_id=EOS, no_timestamps_token_id=None, forced_decoder_ids=FORCED)

    def test_invalid_max_initial_raises(self):
        """Test that max_initial_timestamp_index must be non-negative."""
        with pytest.raises(InvalidConfigurationError):
            TimestampRule(EOS, NO_TIMESTAMPS, FORCED, max_initial_timestamp_index=-1)

    def test_from_config(self):
        """Test building the rule from a GenerationConfig."""
        config = GenerationConfig(
            eos_token_id=EOS,
            no_timestamps_token_id=NO_TIMESTAMPS,
            forced_decoder_ids=FORCED,
            max_initial_timestamp_index=3,
            return_timestamps=True
        )

        rule = TimestampRule.from_config(config)

        assert rule.begin_index == 4
        assert rule.max_initial_timestamp_index == 3


class TestTimestampRuleApply:
    """Test the timestamp state machine."""

    @pytest.mark.parametrize("history", [[0], [0, 2], [0, 2, 3, 7, 1], [0, 2, 3, 7, 8, 9]])
    def test_no_timestamps_always_suppressed(self, rule, history):
        """Test that <|notimestamps|> is -inf at every step."""
        scores = torch.zeros(VOCAB_SIZE)

        rule(history, scores)

        assert scores[NO_TIMESTAMPS].item() == NEG_INF

    def test_forces_first_timestamp(self, rule):
        """Test that the first free token is forced to timestamp_begin."""
        scores = text_favoured_scores()

        rule([0, 2, 3], scores)

        assert scores[TIMESTAMP_BEGIN].item() == 0.0
        others = torch.arange(VOCAB_SIZE) != TIMESTAMP_BEGIN
        assert (scores[others] == NEG_INF).all()

    def test_two_timestamps_require_text(self, rule):
        """Test that after two timestamps no timestamp is allowed."""
        scores = text_favoured_scores()

        rule([0, 2, 3, 7, 8, 9], scores)

        assert (scores[TIMESTAMP_BEGIN:] == NEG_INF).all()
        assert scores[1].item() == 10.0

    def test_single_timestamp_after_prefix_requires_text(self, rule):
        """Test that a lone timestamp right after the prefix is treated as a pair start."""
        scores = text_favoured_scores()

        rule([0, 2, 3, 7, 8], scores)

        assert (scores[TIMESTAMP_BEGIN:] == NEG_INF).all()

    def test_text_then_timestamp_requires_timestamp_or_eos(self, rule):
        """Test that after text followed by a timestamp, text below EOS is suppressed."""
        scores = torch.zeros(VOCAB_SIZE)
        scores[EOS] = 10.0

        rule([0, 2, 3, 7, 1, 8], scores)

        assert (scores[:EOS] == NEG_INF).all()
        assert scores[EOS].item() == 10.0
        assert torch.isfinite(scores[TIMESTAMP_BEGIN:]).all()

    def test_text_after_text_unconstrained(self, rule):
        """Test that two text tokens add no pairing mask."""
        scores = text_favoured_scores()
        original = scores.clone()

        rule([0, 2, 3, 7, 1, 2], scores)

        original[NO_TIMESTAMPS] = NEG_INF
        assert torch.equal(scores, original)

    def test_max_initial_timestamp(self):
        """Test that the first free timestamp is bounded."""
        rule = TimestampRule(EOS, NO_TIMESTAMPS, FORCED, max_initial_timestamp_index=2)
        scores = torch.zeros(VOCAB_SIZE)

        rule([0, 2, 3, 7], scores)

        assert (scores[TIMESTAMP_BEGIN:TIMESTAMP_BEGIN + 3] == 0.0).all()
        assert (scores[TIMESTAMP_BEGIN + 3:] == NEG_INF).all()

    def test_max_initial_only_at_begin_index(self):
        """Test that the bound does not apply later."""
        rule = TimestampRule(EOS, NO_TIMESTAMPS, FORCED, max_initial_timestamp_index=0)
        scores = torch.zeros(VOCAB_SIZE)
        scores[1] = 10.0

        rule([0, 2, 3, 7, 1, 2], scores)

        assert torch.isfinite(scores[TIMESTAMP_BEGIN:]).all()

    def test_timestamp_mass_suppresses_text(self, rule):
        """Test that text is suppressed when timestamps are jointly more likely."""
        scores = torch.zeros(VOCAB_SIZE)
        scores[TIMESTAMP_BEGIN:] = 3.0

        rule([0, 2], scores)

        assert (scores[:TIMESTAMP_BEGIN] == NEG_INF).all()
        assert (scores[TIMESTAMP_BEGIN:] == 3.0).all()

    def test_likely_text_kept(self, rule):
        """Test that a dominant text token keeps text available."""
        scores = text_favoured_scores()

        rule([0, 2], scores)

        assert scores[1].item() == 10.0
        assert torch.isfinite(scores[TIMESTAMP_BEGIN:]).all()

    def test_buffer_too_small_raises(self, rule):
        """Test that special ids outside the buffer are a shape error."""
        with pytest.raises(ShapeMismatchError):
            rule([0], torch.zeros(NO_TIMESTAMPS))

    def test_returns_same_tensor(self, rule):
        """Test that the buffer is mutated in place."""
        scores = torch.zeros(VOCAB_SIZE)

        assert rule([0, 2, 3], scores) is scores
