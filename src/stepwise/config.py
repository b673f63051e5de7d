# config.py
# Settings read from the environment (and a local .env file).
# Validated and frozen at construction time.

import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from stepwise.retry import RetryPolicy

DEFAULT_MODEL = "anthropic/claude-3.5-haiku"


class AgentSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str = DEFAULT_MODEL
    api_key: str | None = Field(default=None, repr=False)
    max_steps: int = Field(10, ge=1)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    workspace: str = "./workspace"
    strict_format: bool = True


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_settings(dotenv_path: str | None = None) -> AgentSettings:
    """Build AgentSettings from STEPWISE_* variables and OPENROUTER_API_KEY."""
    load_dotenv(dotenv_path)

    retry_fields = {
        "max_attempts": os.getenv("STEPWISE_MAX_ATTEMPTS"),
        "base_delay": os.getenv("STEPWISE_BASE_DELAY"),
        "max_delay": os.getenv("STEPWISE_MAX_DELAY"),
        "jitter": os.getenv("STEPWISE_JITTER"),
        "timeout": os.getenv("STEPWISE_TIMEOUT"),
    }
    retry = RetryPolicy(**{k: v for k, v in retry_fields.items() if v not in (None, "")})

    fields = {
        "model": os.getenv("STEPWISE_MODEL"),
        "max_steps": os.getenv("STEPWISE_MAX_STEPS"),
        "workspace": os.getenv("STEPWISE_WORKSPACE"),
    }
    return AgentSettings(
        api_key=os.getenv("OPENROUTER_API_KEY"),
        retry=retry,
        strict_format=_env_bool(os.getenv("STEPWISE_STRICT_FORMAT"), True),
        **{k: v for k, v in fields.items() if v not in (None, "")},
    )
