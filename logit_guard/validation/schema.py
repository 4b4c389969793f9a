"""
JSON Schema describing every generation config option.

The schema is the single source of truth for option types and ranges. It is
checked with ``jsonschema.Draft7Validator`` every time a GenerationConfig is
built, and by the ``logit-guard validate`` command for config files on disk.
Cross-field rules (e.g. min_length <= max_length) cannot be expressed here
and live in ``logit_guard.validation.validator.check_consistency``.
"""

from typing import Any, Dict

_NULL = {"type": "null"}
_TOKEN_ID = {"type": "integer", "minimum": 0}
_TOKEN_ID_LIST = {"type": "array", "items": _TOKEN_ID}
_TOKEN_SEQUENCES = {"type": "array", "items": _TOKEN_ID_LIST}


def _optional(schema: Dict[str, Any]) -> Dict[str, Any]:
    if isinstance(schema.get("type"), str):
        # Nullable type keeps nested errors (items, minimum) at their own path
        return dict(schema, type=[schema["type"], "null"])
    return {"anyOf": [schema, _NULL]}


GENERATION_CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "GenerationConfig",
    "type": "object",
    "properties": {
        # Length of the output
        "max_length": {"type": "integer", "minimum": 1},
        "max_new_tokens": _optional({"type": "integer", "minimum": 1}),
        "min_length": {"type": "integer", "minimum": 0},
        "min_new_tokens": _optional({"type": "integer", "minimum": 0}),
        "early_stopping": {"anyOf": [{"type": "boolean"}, {"const": "never"}]},
        "max_time": _optional({"type": "number", "exclusiveMinimum": 0}),

        # Generation strategy
        "do_sample": {"type": "boolean"},
        "num_beams": {"type": "integer", "minimum": 1},
        "num_beam_groups": {"type": "integer", "minimum": 1},
        "penalty_alpha": _optional({"type": "number", "minimum": 0}),
        "use_cache": {"type": "boolean"},

        # Logits manipulation
        "temperature": {"type": "number", "exclusiveMinimum": 0},
        "top_k": {"type": "integer", "minimum": 0},
        "top_p": {"type": "number", "minimum": 0, "maximum": 1},
        "typical_p": {"type": "number", "minimum": 0, "maximum": 1},
        "epsilon_cutoff": {"type": "number", "minimum": 0, "maximum": 1},
        "eta_cutoff": {"type": "number", "minimum": 0, "maximum": 1},
        "diversity_penalty": {"type": "number", "minimum": 0},
        "repetition_penalty": {"type": "number", "exclusiveMinimum": 0},
        "encoder_repetition_penalty": {"type": "number", "exclusiveMinimum": 0},
        "length_penalty": {"type": "number"},
        "no_repeat_ngram_size": {"type": "integer", "minimum": 0},
        "bad_words_ids": _optional(_TOKEN_SEQUENCES),
        "force_words_ids": _optional({"type": "array"}),
        "renormalize_logits": {"type": "boolean"},
        "constraints": _optional({"type": "array"}),
        "forced_bos_token_id": _optional(_TOKEN_ID),
        "forced_eos_token_id": _optional({"anyOf": [_TOKEN_ID, _TOKEN_ID_LIST]}),
        "remove_invalid_values": {"type": "boolean"},
        "exponential_decay_length_penalty": _optional({
            "type": "array",
            "items": [{"type": "integer", "minimum": 0}, {"type": "number"}],
            "minItems": 2,
            "maxItems": 2,
        }),
        "suppress_tokens": _optional(_TOKEN_ID_LIST),
        "begin_suppress_tokens": _optional(_TOKEN_ID_LIST),
        "forced_decoder_ids": _optional({
            "type": "array",
            "items": {"type": "array", "items": _TOKEN_ID, "minItems": 2, "maxItems": 2},
        }),

        # Output variables
        "num_return_sequences": {"type": "integer", "minimum": 1},
        "output_attentions": {"type": "boolean"},
        "output_hidden_states": {"type": "boolean"},
        "output_scores": {"type": "boolean"},
        "return_dict_in_generate": {"type": "boolean"},

        # Special tokens
        "pad_token_id": _optional(_TOKEN_ID),
        "bos_token_id": _optional(_TOKEN_ID),
        "eos_token_id": _optional({"anyOf": [_TOKEN_ID, _TOKEN_ID_LIST]}),

        # Encoder-decoder models
        "encoder_no_repeat_ngram_size": {"type": "integer", "minimum": 0},
        "decoder_start_token_id": _optional(_TOKEN_ID),

        # Speech transcription
        "no_timestamps_token_id": _optional(_TOKEN_ID),
        "max_initial_timestamp_index": _optional({"type": "integer", "minimum": 0}),
        "return_timestamps": {"type": "boolean"},

        # Wild card
        "generation_kwargs": {"type": "object"},
    },
    "additionalProperties": False,
}
