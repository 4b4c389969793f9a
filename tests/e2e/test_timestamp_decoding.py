"""
End-to-end test: greedy decoding loops driven by a scripted model.

Each test builds a rule chain from a GenerationConfig, then runs a small
greedy decoding loop where a fake model prefers one token per step. The
rules, not the model, decide what is actually emitted.
"""

import pytest
import torch

from logit_guard.config import GenerationConfig
from logit_guard.processing import build_rule_chain


def scripted_model(vocab_size, preferences, default=-1.0, preferred=5.0):
    """Return a model that scores `preferences[step]` highest at each step."""
    def model(history):
        scores = torch.full((vocab_size,), default)
        token = preferences.get(len(history))
        if token is not None:
            scores[token] = preferred
        return scores
    return model


def greedy_decode(chain, model, start_token, eos_token_id, max_length):
    """Greedy loop over a batch of one row."""
    history = [start_token]
    while len(history) < max_length:
        scores = model(history).unsqueeze(0)
        chain.apply_batch([history], scores)
        next_token = int(torch.argmax(scores[0]).item())
        history.append(next_token)
        if next_token == eos_token_id:
            break
    return history


@pytest.mark.e2e
class TestTimestampDecoding:
    """Speech transcription with timestamp pairing.

    Vocabulary: 0-4 text, 5 EOS, 6 <|notimestamps|>, 7-11 timestamps.
    """

    VOCAB_SIZE = 12
    EOS = 5
    TIMESTAMP_BEGIN = 7

    @pytest.fixture
    def config(self):
        return GenerationConfig(
            decoder_start_token_id=0,
            eos_token_id=self.EOS,
            no_timestamps_token_id=6,
            forced_decoder_ids=[[1, 2], [2, 3]],
            max_initial_timestamp_index=1,
            return_timestamps=True,
            max_length=20,
        )

    def test_transcript_structure(self, config):
        """Test the exact transcript the rules produce."""
        chain = build_rule_chain(config, vocab_size=self.VOCAB_SIZE)
        model = scripted_model(self.VOCAB_SIZE, {
            4: 11,  # first free timestamp is too late
            5: 1,
            6: 9,
            7: 1,   # text right after a closing timestamp
            8: 5,
        })

        transcript = greedy_decode(chain, model, 0, self.EOS, config.max_length)

        assert transcript == [0, 2, 3, 7, 7, 1, 9, 7, 5]

    def test_transcript_invariants(self, config):
        """Test invariants that hold for any model output."""
        chain = build_rule_chain(config, vocab_size=self.VOCAB_SIZE)
        torch.manual_seed(0)

        for _ in range(5):
            def model(history):
                return torch.randn(self.VOCAB_SIZE) * 3

            transcript = greedy_decode(chain, model, 0, self.EOS, config.max_length)

            # Forced prefix, then the forced first timestamp
            assert transcript[:4] == [0, 2, 3, self.TIMESTAMP_BEGIN]
            assert 6 not in transcript
            # Never three timestamps in a row after the prefix
            generated = transcript[4:]
            for i in range(len(generated) - 2):
                window = generated[i:i + 3]
                assert not all(token >= self.TIMESTAMP_BEGIN for token in window)


@pytest.mark.e2e
class TestTextDecoding:
    """Plain text generation with repetition and length rules."""

    def test_length_and_repetition(self):
        """Test that n-gram blocking and forced EOS shape the output."""
        config = GenerationConfig(
            repetition_penalty=2.0,
            no_repeat_ngram_size=1,
            min_length=3,
            eos_token_id=7,
            forced_eos_token_id=7,
            max_length=5,
        )
        chain = build_rule_chain(config, vocab_size=8)

        def model(history):
            scores = torch.zeros(8)
            scores[3] = 5.0
            scores[4] = 4.0
            return scores

        output = greedy_decode(chain, model, 0, 7, config.max_length)

        assert output == [0, 3, 4, 1, 7]
        assert len(output) == config.max_length
        assert len(set(output)) == len(output)

    def test_batch_rows_are_independent(self):
        """Test that rows at different steps get different treatment."""
        config = GenerationConfig(forced_bos_token_id=4, forced_eos_token_id=7, max_length=4)
        chain = build_rule_chain(config, vocab_size=8)
        scores = torch.zeros(3, 8)

        chain.apply_batch([[0], [0, 4], [0, 4, 1]], scores)

        assert int(torch.argmax(scores[0])) == 4
        assert torch.isfinite(scores[1]).all()
        assert int(torch.argmax(scores[2])) == 7
        assert torch.isinf(scores[2]).sum().item() == 7
