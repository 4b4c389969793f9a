"""
Generation configuration - immutable record of decoding options.

A GenerationConfig is created once per generation request by merging
caller overrides over the defaults, validated, and then shared by reference
with every rule constructor and with the decoding loop. It is frozen:
``update()`` returns a new, re-validated config instead of mutating.

Most options (num_beams, top_k, max_time, ...) are only read by the external
decoding loop; the ones that turn into rules are listed in
``logit_guard.processing.builder``.

Usage:
    ```python
    from logit_guard.config import GenerationConfig

    config = GenerationConfig(max_length=64, no_repeat_ngram_size=3)
    config.max_length             # 64
    config.top_k                  # 50 (default)

    beam_config = config.update(num_beams=4)

    # From a model's generation_config.json
    config = GenerationConfig.from_json_file("generation_config.json")
    ```
"""

import dataclasses
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from logit_guard.errors import InvalidConfigurationError
from logit_guard.validation.validator import format_validation_errors, validate_options

logger = logging.getLogger(__name__)


def _freeze(value: Any) -> Any:
    """Recursively turn lists into tuples so the config cannot be mutated."""
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    """Recursively turn tuples back into lists (JSON representation)."""
    if isinstance(value, (list, tuple)):
        return [_thaw(item) for item in value]
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    return value


def read_options_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read generation options from a JSON file without validating them.

    Metadata keys (leading underscore, ``transformers_version``) are dropped.

    Raises:
        InvalidConfigurationError: If the file is not valid JSON or not an object
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfigurationError(f"Invalid JSON in config file {path}: {e}")

    if not isinstance(data, dict):
        raise InvalidConfigurationError(f"Config file {path} must contain a JSON object")

    options = {
        key: value for key, value in data.items()
        if not key.startswith("_") and key != "transformers_version"
    }
    logger.debug(f"Loaded {len(options)} generation option(s) from {path}")
    return options


@dataclass(frozen=True)
class GenerationConfig:
    """
    Decoding options with their defaults.

    Attributes are grouped as follows:
        length: max_length, max_new_tokens, min_length, min_new_tokens,
            early_stopping, max_time
        strategy: do_sample, num_beams, num_beam_groups, penalty_alpha, use_cache
        logits: temperature ... forced_decoder_ids
        output: num_return_sequences ... return_dict_in_generate
        special tokens: pad_token_id, bos_token_id, eos_token_id
        encoder-decoder: encoder_no_repeat_ngram_size, decoder_start_token_id
        speech: no_timestamps_token_id, max_initial_timestamp_index,
            return_timestamps
        wild card: generation_kwargs
    """

    # Parameters that control the length of the output
    max_length: int = 20
    max_new_tokens: Optional[int] = None
    min_length: int = 0
    min_new_tokens: Optional[int] = None
    early_stopping: Union[bool, str] = False
    max_time: Optional[float] = None

    # Parameters that control the generation strategy used
    do_sample: bool = False
    num_beams: int = 1
    num_beam_groups: int = 1
    penalty_alpha: Optional[float] = None
    use_cache: bool = True

    # Parameters for manipulation of the model output logits
    temperature: float = 1.0
    top_k: int = 50
    top_p: float = 1.0
    typical_p: float = 1.0
    epsilon_cutoff: float = 0.0
    eta_cutoff: float = 0.0
    diversity_penalty: float = 0.0
    repetition_penalty: float = 1.0
    encoder_repetition_penalty: float = 1.0
    length_penalty: float = 1.0
    no_repeat_ngram_size: int = 0
    bad_words_ids: Optional[Tuple[Tuple[int, ...], ...]] = None
    force_words_ids: Optional[Tuple[Any, ...]] = None
    renormalize_logits: bool = False
    constraints: Optional[Tuple[Any, ...]] = None
    forced_bos_token_id: Optional[int] = None
    forced_eos_token_id: Optional[Union[int, Tuple[int, ...]]] = None
    remove_invalid_values: bool = False
    exponential_decay_length_penalty: Optional[Tuple[int, float]] = None
    suppress_tokens: Optional[Tuple[int, ...]] = None
    begin_suppress_tokens: Optional[Tuple[int, ...]] = None
    forced_decoder_ids: Optional[Tuple[Tuple[int, int], ...]] = None

    # Parameters that define the output variables of the decoding loop
    num_return_sequences: int = 1
    output_attentions: bool = False
    output_hidden_states: bool = False
    output_scores: bool = False
    return_dict_in_generate: bool = False

    # Special tokens that can be used at generation time
    pad_token_id: Optional[int] = None
    bos_token_id: Optional[int] = None
    eos_token_id: Optional[Union[int, Tuple[int, ...]]] = None

    # Generation parameters exclusive to encoder-decoder models
    encoder_no_repeat_ngram_size: int = 0
    decoder_start_token_id: Optional[int] = None

    # Speech transcription (timestamp decoding)
    no_timestamps_token_id: Optional[int] = None
    max_initial_timestamp_index: Optional[int] = None
    return_timestamps: bool = False

    # Wild card
    generation_kwargs: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        # Frozen dataclass: normalize through object.__setattr__
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(value, (list, tuple)):
                object.__setattr__(self, f.name, _freeze(value))

        result = validate_options(self.to_dict())
        if not result.is_valid:
            message = format_validation_errors(result.errors)
            logger.debug(message)
            raise InvalidConfigurationError(
                message,
                errors=[f"{error.path}: {error.message}" for error in result.errors]
            )

        # Read-only view over a private copy
        kwargs = {key: _freeze(value) for key, value in self.generation_kwargs.items()}
        object.__setattr__(self, "generation_kwargs", MappingProxyType(kwargs))

    @classmethod
    def option_names(cls) -> Tuple[str, ...]:
        """Names of every option, in declaration order."""
        return tuple(f.name for f in dataclasses.fields(cls))

    @classmethod
    def from_dict(cls, options: Optional[Dict[str, Any]] = None, **overrides) -> "GenerationConfig":
        """
        Build a config from a dict of options merged over the defaults.

        Args:
            options: Option name -> value
            **overrides: Options that take precedence over ``options``

        Returns:
            GenerationConfig

        Raises:
            InvalidConfigurationError: On unknown options or invalid values

        Example:
            ```python
            config = GenerationConfig.from_dict({"max_length": 448}, num_beams=5)
            ```
        """
        merged = dict(options or {})
        merged.update(overrides)

        known = set(cls.option_names())
        unknown = sorted(key for key in merged if key not in known)
        if unknown:
            raise InvalidConfigurationError(
                f"Unknown generation option(s): {', '.join(unknown)}",
                errors=[f".{key}: unknown option" for key in unknown]
            )

        return cls(**merged)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "GenerationConfig":
        """
        Load a config from a JSON file such as a model's generation_config.json.

        Keys that start with an underscore (e.g. ``_from_model_config``) and
        the ``transformers_version`` marker are metadata, not options, and are
        skipped.

        Raises:
            InvalidConfigurationError: If the file is not a JSON object or
                contains invalid options
        """
        return cls.from_dict(read_options_file(path))

    def to_dict(self) -> Dict[str, Any]:
        """Return every option as a JSON-compatible dict (lists, not tuples)."""
        return {f.name: _thaw(getattr(self, f.name)) for f in dataclasses.fields(self)}

    def to_json_string(self, only_non_default: bool = False) -> str:
        """Serialize to a JSON string."""
        options = self.non_default_options() if only_non_default else self.to_dict()
        return json.dumps(options, indent=2, sort_keys=True)

    def to_json_file(self, path: Union[str, Path], only_non_default: bool = False) -> Path:
        """Write the config to ``path`` as JSON."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            f.write(self.to_json_string(only_non_default=only_non_default))
        return path

    def update(self, **overrides) -> "GenerationConfig":
        """
        Return a new config with ``overrides`` applied.

        Raises:
            InvalidConfigurationError: On unknown options or invalid values
        """
        return type(self).from_dict(self.to_dict(), **overrides)

    def non_default_options(self) -> Dict[str, Any]:
        """Options whose value differs from the default."""
        defaults = type(self)().to_dict()
        return {
            key: value for key, value in self.to_dict().items()
            if value != defaults[key]
        }
