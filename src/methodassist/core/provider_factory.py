"""Factory for creating provider chat clients with auto-detection."""

import os
from typing import Optional

import requests

from methodassist.core.llm_base import ChatClient
from methodassist.core.logging import get_logger
from methodassist.core.ollama_client import OllamaClient
from methodassist.core.openai_client import PROVIDER_PRESETS, OpenAICompatibleClient

logger = get_logger("methodassist.provider_factory")

SUPPORTED_PROVIDERS = ("openai", "openrouter", "qwen", "ollama", "auto")


def check_ollama_available(base_url: Optional[str] = None) -> bool:
    """
    Check if Ollama is available and running.

    Args:
        base_url: Ollama base URL to check

    Returns:
        True if Ollama is available, False otherwise
    """
    base_url = base_url or os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    try:
        response = requests.get(f"{base_url}/api/tags", timeout=2)
        return response.status_code == 200
    except requests.RequestException:
        return False


def check_api_key_available(provider: str) -> bool:
    """Check if the API key env var for an OpenAI-compatible provider is set."""
    key_env = PROVIDER_PRESETS[provider][0]
    return bool(os.getenv(key_env))


def detect_provider(base_url: Optional[str] = None) -> str:
    """
    Pick a provider: the first with an API key, then a running Ollama.

    Raises:
        ValueError: If no provider is available
    """
    for provider in ("openai", "openrouter", "qwen"):
        if check_api_key_available(provider):
            return provider
    if check_ollama_available(base_url):
        return "ollama"
    raise ValueError(
        "No generation provider available. Set OPENAI_API_KEY, OPENROUTER_API_KEY "
        "or QWEN_API_KEY, or ensure Ollama is running."
    )


def create_client(
    provider: str = "auto",
    model: Optional[str] = None,
    temperature: float = 0.0,
    seed: Optional[int] = None,
    base_url: Optional[str] = None,
    api_key: Optional[str] = None,
) -> ChatClient:
    """
    Create a chat client for the specified provider.

    Args:
        provider: Provider name ("openai", "openrouter", "qwen", "ollama", or "auto")
        model: Model name (provider-specific)
        temperature: Generation temperature
        seed: Random seed for determinism
        base_url: Base URL override
        api_key: API key (not used for Ollama)

    Returns:
        Chat client instance

    Raises:
        ValueError: If provider is invalid or not available
    """
    provider = provider.lower()
    if provider == "auto":
        if api_key:
            provider = "openai"
        else:
            provider = detect_provider(base_url)
        logger.info(f"Auto-detected provider: {provider}", context={"provider": provider})

    if provider == "ollama":
        return OllamaClient(
            base_url=base_url,
            model=model,
            temperature=temperature,
            seed=seed,
        )

    if provider in PROVIDER_PRESETS:
        return OpenAICompatibleClient(
            provider=provider,
            api_key=api_key,
            base_url=base_url,
            model=model,
            temperature=temperature,
            seed=seed,
        )

    raise ValueError(
        f"Unknown provider: {provider}. Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
    )
