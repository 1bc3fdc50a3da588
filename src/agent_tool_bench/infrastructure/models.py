"""Chat-model and embedding factory.

Maps friendly model ids to LangChain chat models.  Provider packages are
imported lazily inside the constructors so that importing this module (and
the tool adapters that do not need a model) stays cheap.

Usage::

    model = create_chat_model(get_model_from_env())
    embeddings = create_embeddings("text-embedding-3-small")
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable

from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelSpec:
    """Provider and official API model string behind a friendly id."""

    provider: str
    model_name: str


MODEL_CONFIG: dict[str, ModelSpec] = {
    "claude-opus-4-5": ModelSpec("anthropic", "claude-opus-4-5"),
    "claude-sonnet-4-5": ModelSpec("anthropic", "claude-sonnet-4-5"),
    "claude-haiku-4-5": ModelSpec("anthropic", "claude-haiku-4-5"),
    "gpt-5.1": ModelSpec("openai", "gpt-5.1"),
    "gpt-5": ModelSpec("openai", "gpt-5"),
    "gpt-5-mini": ModelSpec("openai", "gpt-5-mini"),
    "gpt-5-nano": ModelSpec("openai", "gpt-5-nano"),
}

DEFAULT_MODEL = "claude-opus-4-5"

# Anthropic requires an explicit output budget.
_ANTHROPIC_MAX_TOKENS = 16_000


def is_valid_model_id(model_id: str) -> bool:
    """Check whether *model_id* is a supported friendly id."""
    return model_id in MODEL_CONFIG


def get_supported_models() -> list[str]:
    """Return all supported friendly ids."""
    return list(MODEL_CONFIG)


def get_model_from_env(environ: Mapping[str, str] | None = None) -> str:
    """Return ``MODEL`` from the environment, or the default.

    Unknown values fall back to :data:`DEFAULT_MODEL` with a warning rather
    than failing, so a stale ``.env`` does not break every entry point.
    """
    env = os.environ if environ is None else environ
    model_id = env.get("MODEL", "")
    if model_id and is_valid_model_id(model_id):
        return model_id
    if model_id:
        logger.warning(
            "Unknown MODEL %r, falling back to %s (supported: %s)",
            model_id,
            DEFAULT_MODEL,
            ", ".join(get_supported_models()),
        )
    return DEFAULT_MODEL


# -- constructors ------------------------------------------------------------


def _create_anthropic(model_name: str, **kwargs: Any) -> BaseChatModel:
    from langchain_anthropic import ChatAnthropic

    kwargs.setdefault("max_tokens", _ANTHROPIC_MAX_TOKENS)
    return ChatAnthropic(model=model_name, **kwargs)


def _create_openai(model_name: str, **kwargs: Any) -> BaseChatModel:
    from langchain_openai import ChatOpenAI

    # Token usage on streamed responses is opt-in for OpenAI.
    kwargs.setdefault("stream_usage", True)
    return ChatOpenAI(model=model_name, **kwargs)


_PROVIDERS: dict[str, Callable[..., BaseChatModel]] = {
    "anthropic": _create_anthropic,
    "openai": _create_openai,
}


def create_chat_model(model_id: str, **kwargs: Any) -> BaseChatModel:
    """Create a chat model from a friendly id.

    Parameters
    ----------
    model_id:
        One of :func:`get_supported_models`.
    **kwargs:
        Forwarded to the provider's chat model constructor.

    Raises
    ------
    ValueError
        If *model_id* is not a supported id.
    """
    spec = MODEL_CONFIG.get(model_id)
    if spec is None:
        raise ValueError(
            f"Unknown model: {model_id}. "
            f"Supported models: {', '.join(get_supported_models())}"
        )
    logger.debug("Creating %s chat model %s", spec.provider, spec.model_name)
    return _PROVIDERS[spec.provider](spec.model_name, **kwargs)


def create_scorer_model(model_name: str, **kwargs: Any) -> BaseChatModel:
    """Create the classifier model used by the scorer.

    Friendly ids go through :func:`create_chat_model`; any other name is
    treated as a raw OpenAI model name (e.g. ``gpt-4.1-mini``).
    """
    if is_valid_model_id(model_name):
        return create_chat_model(model_name, **kwargs)
    from langchain_openai import ChatOpenAI

    return ChatOpenAI(model=model_name, temperature=0, **kwargs)


def create_embeddings(model_name: str, **kwargs: Any) -> Embeddings:
    """Create the OpenAI embedding client used for query vectors."""
    from langchain_openai import OpenAIEmbeddings

    return OpenAIEmbeddings(model=model_name, **kwargs)
