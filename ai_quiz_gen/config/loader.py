"""
Configuration management and loading.

Builds one immutable GeneratorConfig at process start, from a YAML file or
from environment variables, which is then injected into each component.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml


DEFAULT_API_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "openai/gpt-4"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000
DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_QUOTA_LIMIT = 2
DEFAULT_HTTP_REFERER = "https://10x-quiz-stack.app"
DEFAULT_APP_TITLE = "10x Quiz Stack"
DEFAULT_DB_PATH = "ai_quiz_gen.db"


@dataclass(frozen=True)
class GeneratorConfig:
    """Process-wide settings for the generation pipeline."""
    api_key: str = ""
    api_url: str = DEFAULT_API_URL
    default_model: str = DEFAULT_MODEL
    default_temperature: float = DEFAULT_TEMPERATURE
    default_max_tokens: int = DEFAULT_MAX_TOKENS
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    quota_limit: int = DEFAULT_QUOTA_LIMIT
    enable_usage_logging: bool = True
    use_structured_output: bool = False
    http_referer: str = DEFAULT_HTTP_REFERER
    app_title: str = DEFAULT_APP_TITLE
    db_path: str = DEFAULT_DB_PATH

    def __post_init__(self):
        """Validate numeric ranges and required strings."""
        if not self.default_model or not self.default_model.strip():
            raise ValueError("default_model cannot be empty")
        if not 0 <= self.default_temperature <= 2:
            raise ValueError("default_temperature must be between 0 and 2")
        if self.default_max_tokens < 1:
            raise ValueError("default_max_tokens must be > 0")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.quota_limit < 1:
            raise ValueError("quota_limit must be > 0")


# Expected YAML types per key; bool is checked before int since bool subclasses int
_FIELD_TYPES: Dict[str, tuple] = {
    "api_key": (str,),
    "api_url": (str,),
    "default_model": (str,),
    "default_temperature": (int, float),
    "default_max_tokens": (int,),
    "timeout_seconds": (int, float),
    "quota_limit": (int,),
    "enable_usage_logging": (bool,),
    "use_structured_output": (bool,),
    "http_referer": (str,),
    "app_title": (str,),
    "db_path": (str,),
}


def load_config(path: str, environ: Optional[Mapping[str, str]] = None) -> GeneratorConfig:
    """Load and validate generator configuration from a YAML file.

    Strict validation: unknown keys and wrong value types are rejected so a
    typo can never silently fall back to a default quota or model.

    Args:
        path: Path to YAML configuration file
        environ: Environment used for the API key fallback (defaults to os.environ)

    Returns:
        Validated GeneratorConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Generator config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_keys = {f.name for f in fields(GeneratorConfig)}
    unknown_keys = set(raw_config.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    values: Dict[str, Any] = {}
    for key, value in raw_config.items():
        expected = _FIELD_TYPES[key]
        if bool not in expected and isinstance(value, bool):
            raise ValueError(f"'{key}' must not be a boolean")
        if not isinstance(value, expected):
            names = " or ".join(t.__name__ for t in expected)
            raise ValueError(f"'{key}' must be of type {names}")
        values[key] = value

    for key in ("default_temperature", "timeout_seconds"):
        if key in values:
            values[key] = float(values[key])

    if not values.get("api_key"):
        env = os.environ if environ is None else environ
        values["api_key"] = env.get("OPENROUTER_API_KEY", "")

    return GeneratorConfig(**values)


def load_config_from_env(environ: Optional[Mapping[str, str]] = None) -> GeneratorConfig:
    """Build configuration from environment-style settings.

    Unparsable or out-of-range numbers fall back to their defaults rather than
    failing startup.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        GeneratorConfig with defaults applied
    """
    env = os.environ if environ is None else environ

    return GeneratorConfig(
        api_key=env.get("OPENROUTER_API_KEY", ""),
        api_url=env.get("OPENROUTER_API_URL") or DEFAULT_API_URL,
        default_model=env.get("AI_MODEL") or DEFAULT_MODEL,
        default_temperature=_parse_float(
            env.get("AI_TEMPERATURE"), DEFAULT_TEMPERATURE, minimum=0.0, maximum=2.0
        ),
        default_max_tokens=_parse_int(env.get("AI_MAX_TOKENS"), DEFAULT_MAX_TOKENS),
        timeout_seconds=_parse_float(
            env.get("AI_REQUEST_TIMEOUT"), DEFAULT_TIMEOUT_SECONDS, minimum=0.001
        ),
        quota_limit=_parse_int(env.get("AI_QUIZ_GENERATION_LIMIT_DEFAULT"), DEFAULT_QUOTA_LIMIT),
        enable_usage_logging=env.get("AI_ENABLE_USAGE_LOGGING", "").strip().lower() != "false",
        use_structured_output=env.get("AI_STRUCTURED_OUTPUT", "").strip().lower() == "true",
        http_referer=env.get("SITE") or DEFAULT_HTTP_REFERER,
        db_path=env.get("AI_QUIZ_DB_PATH") or DEFAULT_DB_PATH,
    )


def _parse_int(raw: Optional[str], default: int) -> int:
    """Parse a positive integer, returning default when missing or invalid."""
    if raw is None:
        return default
    try:
        value = int(str(raw).strip(), 10)
    except ValueError:
        return default
    return value if value > 0 else default


def _parse_float(
    raw: Optional[str],
    default: float,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None
) -> float:
    """Parse a float within optional bounds, returning default otherwise."""
    if raw is None:
        return default
    try:
        value = float(str(raw).strip())
    except ValueError:
        return default
    if value != value:  # NaN
        return default
    if minimum is not None and value < minimum:
        return default
    if maximum is not None and value > maximum:
        return default
    return value
