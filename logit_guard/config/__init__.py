"""
Generation configuration module.

Example:
    ```python
    from logit_guard.config import GenerationConfig

    config = GenerationConfig.from_json_file("generation_config.json")
    print(config.non_default_options())
    ```
"""

from logit_guard.config.generation_config import GenerationConfig, read_options_file

__all__ = [
    "GenerationConfig",
    "read_options_file",
]
