# config.py
# Settings resolution: CLI flags first, then environment (.env is loaded
# by the CLI via python-dotenv). Anthropic wins when both keys are set.

import os
from typing import Literal

from pydantic import BaseModel, Field

from nestbox_generate import anthropic_adapter, openai_adapter
from nestbox_generate.models import FinishPolicy
from nestbox_generate.provider import ProviderAdapter

ANTHROPIC_KEY_ENV = "ANTHROPIC_API_KEY"
OPENAI_KEY_ENV = "OPENAI_API_KEY"

Provider = Literal["anthropic", "openai"]

PROVIDER_LABELS: dict[str, str] = {
    "anthropic": "Claude (Anthropic)",
    "openai": "GPT (OpenAI)",
}


class ConfigError(Exception):
    """Raised when the invocation cannot be configured."""


class GeneratorSettings(BaseModel):
    provider: Provider
    api_key: str = Field(..., repr=False)
    model: str
    max_iterations: int = Field(..., ge=1)
    finish_policy: FinishPolicy = FinishPolicy.REQUIRE_VALID

    @property
    def provider_label(self) -> str:
        return PROVIDER_LABELS[self.provider]


def resolve_settings(
    default_budget: int,
    anthropic_api_key: str | None = None,
    openai_api_key: str | None = None,
    model: str | None = None,
    max_iterations: int | None = None,
    allow_invalid_finish: bool = False,
) -> GeneratorSettings:
    anthropic_key = anthropic_api_key or os.getenv(ANTHROPIC_KEY_ENV)
    openai_key = openai_api_key or os.getenv(OPENAI_KEY_ENV)

    if not anthropic_key and not openai_key:
        raise ConfigError(
            "An API key is required. Provide --anthropic-api-key / "
            f"{ANTHROPIC_KEY_ENV} or --openai-api-key / {OPENAI_KEY_ENV}."
        )

    budget = default_budget if max_iterations is None else max_iterations
    if budget < 1:
        raise ConfigError(f"--max-iterations must be at least 1, got {budget}.")

    if anthropic_key:
        provider: Provider = "anthropic"
        key = anthropic_key
        default_model = anthropic_adapter.DEFAULT_MODEL
    else:
        provider = "openai"
        key = openai_key
        default_model = openai_adapter.DEFAULT_MODEL

    return GeneratorSettings(
        provider=provider,
        api_key=key,
        model=model or default_model,
        max_iterations=budget,
        finish_policy=(
            FinishPolicy.ALLOW_INVALID if allow_invalid_finish else FinishPolicy.REQUIRE_VALID
        ),
    )


def make_adapter(settings: GeneratorSettings) -> ProviderAdapter:
    if settings.provider == "anthropic":
        return anthropic_adapter.AnthropicAdapter(api_key=settings.api_key, model=settings.model)
    return openai_adapter.OpenAIAdapter(api_key=settings.api_key, model=settings.model)
