"""
Unit tests for GenerationConfig.
"""

import dataclasses
import json

import pytest

from logit_guard.config import GenerationConfig, read_options_file
from logit_guard.errors import InvalidConfigurationError


class TestGenerationConfigDefaults:
    """Test construction and defaults."""

    def test_defaults(self):
        """Test a few documented defaults."""
        config = GenerationConfig()

        assert config.max_length == 20
        assert config.top_k == 50
        assert config.top_p == 1.0
        assert config.repetition_penalty == 1.0
        assert config.no_repeat_ngram_size == 0
        assert config.eos_token_id is None
        assert config.use_cache is True
        assert config.return_timestamps is False
        assert config.generation_kwargs == {}

    def test_overrides(self):
        """Test that overrides replace defaults field by field."""
        config = GenerationConfig(max_length=64, num_beams=4)

        assert config.max_length == 64
        assert config.num_beams == 4
        assert config.top_k == 50

    def test_frozen(self):
        """Test that a config cannot be mutated."""
        config = GenerationConfig()

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.max_length = 10

    def test_lists_frozen_into_tuples(self):
        """Test that list options become tuples."""
        config = GenerationConfig(forced_decoder_ids=[[1, 50259], [2, 50359]], suppress_tokens=[1, 2])

        assert config.forced_decoder_ids == ((1, 50259), (2, 50359))
        assert config.suppress_tokens == (1, 2)

    def test_eos_accepts_int_or_list(self):
        """Test that eos_token_id may be a single id or several."""
        assert GenerationConfig(eos_token_id=2).eos_token_id == 2
        assert GenerationConfig(eos_token_id=[2, 3]).eos_token_id == (2, 3)

    def test_tuples_containing_lists_frozen(self):
        """Test that tuples are frozen all the way down."""
        config = GenerationConfig(forced_decoder_ids=([1, 2], [2, 3]))

        assert config.forced_decoder_ids == ((1, 2), (2, 3))

    def test_generation_kwargs_read_only(self):
        """Test that generation_kwargs cannot be changed after construction."""
        kwargs = {"language": "en", "prompt_ids": [1, 2]}
        config = GenerationConfig(generation_kwargs=kwargs)

        with pytest.raises(TypeError):
            config.generation_kwargs["language"] = "fr"

        kwargs["language"] = "fr"
        assert config.generation_kwargs["language"] == "en"
        assert config.generation_kwargs["prompt_ids"] == (1, 2)
        assert config.to_dict()["generation_kwargs"] == {"language": "en", "prompt_ids": [1, 2]}

    def test_hashable(self):
        """Test that equal configs hash alike."""
        first = GenerationConfig(eos_token_id=[2, 3], generation_kwargs={"task": "transcribe"})
        second = GenerationConfig(eos_token_id=[2, 3])

        assert hash(first) == hash(second)
        assert first != second
        assert len({GenerationConfig(), GenerationConfig()}) == 1



class TestGenerationConfigValidation:
    """Test validation at construction."""

    @pytest.mark.parametrize("overrides", [
        {"max_length": 0},
        {"max_length": "20"},
        {"top_p": 1.5},
        {"temperature": 0.0},
        {"repetition_penalty": -1.0},
        {"num_beams": 0},
        {"eos_token_id": -1},
        {"forced_decoder_ids": [[1, 2, 3]]},
        {"early_stopping": "sometimes"},
        {"do_sample": 1},
    ])
    def test_invalid_values_raise(self, overrides):
        """Test that type and range violations are rejected."""
        with pytest.raises(InvalidConfigurationError):
            GenerationConfig(**overrides)

    def test_min_length_above_max_length(self):
        """Test the cross-field length check."""
        with pytest.raises(InvalidConfigurationError) as exc_info:
            GenerationConfig(min_length=30, max_length=20)

        assert any("min_length" in error for error in exc_info.value.errors)

    def test_beam_groups_must_divide_beams(self):
        """Test the beam group check."""
        with pytest.raises(InvalidConfigurationError):
            GenerationConfig(num_beams=4, num_beam_groups=3)

        assert GenerationConfig(num_beams=4, num_beam_groups=2).num_beam_groups == 2

    def test_return_sequences_bounded_by_beams(self):
        """Test that greedy/beam search cannot return more sequences than beams."""
        with pytest.raises(InvalidConfigurationError):
            GenerationConfig(num_return_sequences=3, num_beams=2)

        assert GenerationConfig(num_return_sequences=3, do_sample=True).num_return_sequences == 3

    def test_return_timestamps_requires_token_ids(self):
        """Test that timestamp decoding needs its special tokens."""
        with pytest.raises(InvalidConfigurationError) as exc_info:
            GenerationConfig(return_timestamps=True)

        assert len(exc_info.value.errors) == 3

    @pytest.mark.parametrize("overrides", [
        {"max_length": 20.0},
        {"no_repeat_ngram_size": 2.0},
        {"forced_eos_token_id": 1.0},
        {"eos_token_id": [2.0, 3]},
        {"forced_decoder_ids": [[1.0, 2.0]]},
        {"max_length": True},
    ])
    def test_integral_floats_are_not_integers(self, overrides):
        """Test that integer options reject floats like 2.0 and booleans."""
        with pytest.raises(InvalidConfigurationError):
            GenerationConfig(**overrides)

    def test_float_options_accept_ints(self):
        """Test that number options still take plain ints."""
        config = GenerationConfig(temperature=1, repetition_penalty=2)

        assert config.temperature == 1
        assert config.repetition_penalty == 2

    def test_return_timestamps_needs_single_eos(self):
        """Test that timestamp decoding rejects several EOS ids."""
        options = dict(no_timestamps_token_id=6, forced_decoder_ids=[[1, 2]], return_timestamps=True)

        with pytest.raises(InvalidConfigurationError) as exc_info:
            GenerationConfig(eos_token_id=[5, 4], **options)

        assert exc_info.value.errors == [".eos_token_id: return_timestamps requires a single eos_token_id"]
        assert GenerationConfig(eos_token_id=[5], **options).eos_token_id == (5,)


    def test_errors_carry_every_problem(self):
        """Test that all schema errors are reported at once."""
        with pytest.raises(InvalidConfigurationError) as exc_info:
            GenerationConfig(top_k=-1, top_p=2.0)

        assert len(exc_info.value.errors) == 2


class TestGenerationConfigConstruction:
    """Test alternate constructors and serialization."""

    def test_from_dict(self):
        """Test merging a dict and keyword overrides."""
        config = GenerationConfig.from_dict({"max_length": 448, "num_beams": 2}, num_beams=5)

        assert config.max_length == 448
        assert config.num_beams == 5

    def test_from_dict_unknown_key_raises(self):
        """Test that unknown options are named in the error."""
        with pytest.raises(InvalidConfigurationError) as exc_info:
            GenerationConfig.from_dict({"max_lenght": 10})

        assert "max_lenght" in str(exc_info.value)

    def test_to_dict_uses_lists(self):
        """Test that to_dict is JSON-compatible."""
        config = GenerationConfig(forced_decoder_ids=[[1, 2]])
        options = config.to_dict()

        assert options["forced_decoder_ids"] == [[1, 2]]
        assert set(options) == set(GenerationConfig.option_names())

    def test_update_returns_new_config(self):
        """Test that update leaves the original untouched."""
        config = GenerationConfig(max_length=30)
        updated = config.update(num_beams=3)

        assert updated is not config
        assert updated.num_beams == 3
        assert updated.max_length == 30
        assert config.num_beams == 1

    def test_update_is_validated(self):
        """Test that update re-runs validation."""
        with pytest.raises(InvalidConfigurationError):
            GenerationConfig().update(top_p=5.0)

    def test_non_default_options(self):
        """Test listing only changed options."""
        config = GenerationConfig(max_length=64, repetition_penalty=1.2)

        assert config.non_default_options() == {"max_length": 64, "repetition_penalty": 1.2}
        assert GenerationConfig().non_default_options() == {}

    def test_json_file_roundtrip(self, tmp_path):
        """Test saving and loading a config file."""
        config = GenerationConfig(max_length=64, suppress_tokens=[1, 2], eos_token_id=[3, 4])
        path = config.to_json_file(tmp_path / "generation_config.json")

        assert GenerationConfig.from_json_file(path) == config

    def test_to_json_string_non_default(self):
        """Test serializing only the non-default options."""
        config = GenerationConfig(top_k=10)

        assert json.loads(config.to_json_string(only_non_default=True)) == {"top_k": 10}

    def test_from_json_file_skips_metadata(self, tmp_path):
        """Test that model metadata keys are ignored."""
        path = tmp_path / "generation_config.json"
        path.write_text(json.dumps({
            "_from_model_config": True,
            "transformers_version": "4.27.0",
            "decoder_start_token_id": 50258,
            "max_length": 448,
        }))

        config = GenerationConfig.from_json_file(path)

        assert config.max_length == 448
        assert config.decoder_start_token_id == 50258

    def test_from_json_file_invalid_json(self, tmp_path):
        """Test that malformed files raise a configuration error."""
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        with pytest.raises(InvalidConfigurationError):
            GenerationConfig.from_json_file(path)

    def test_read_options_file_requires_object(self, tmp_path):
        """Test that a JSON array is not a config."""
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")

        with pytest.raises(InvalidConfigurationError):
            read_options_file(path)
