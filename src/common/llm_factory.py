"""
LLM Factory Module.

Provides factory functions for creating the ChatOpenAI instances used by the
extraction client. All services should use these factories instead of direct
ChatOpenAI instantiation so model, key and base URL come from Config.

Usage:
    from src.common.llm_factory import create_llm, create_json_llm

    # Deterministic JSON-mode LLM for extraction
    llm = create_json_llm()

    # With custom parameters
    llm = create_llm(model="gpt-4o", temperature=0.0, max_tokens=800)
"""

import logging
from typing import Any, Optional

from langchain_openai import ChatOpenAI

from src.common.config import Config

logger = logging.getLogger(__name__)


def create_llm(
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    **kwargs: Any,
) -> ChatOpenAI:
    """
    Create a ChatOpenAI instance.

    Args:
        model: Model name (defaults to Config.EXTRACTION_MODEL)
        temperature: Temperature (defaults to Config.EXTRACTION_TEMPERATURE)
        **kwargs: Additional ChatOpenAI parameters

    Returns:
        ChatOpenAI instance
    """
    effective_model = model or Config.EXTRACTION_MODEL
    effective_temperature = (
        temperature if temperature is not None else Config.EXTRACTION_TEMPERATURE
    )

    llm = ChatOpenAI(
        model=effective_model,
        temperature=effective_temperature,
        api_key=Config.get_llm_api_key(),
        base_url=Config.get_llm_base_url(),
        **kwargs,
    )

    logger.debug(f"Created OpenAI LLM: model={effective_model}, temperature={effective_temperature}")

    return llm


def create_json_llm(
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    **kwargs: Any,
) -> ChatOpenAI:
    """
    Create a ChatOpenAI instance constrained to return a single JSON object.

    Args:
        model: Model name (defaults to Config.EXTRACTION_MODEL)
        temperature: Temperature (defaults to Config.EXTRACTION_TEMPERATURE)
        **kwargs: Additional ChatOpenAI parameters

    Returns:
        ChatOpenAI instance with JSON response format
    """
    return create_llm(
        model=model,
        temperature=temperature,
        model_kwargs={"response_format": {"type": "json_object"}},
        **kwargs,
    )
