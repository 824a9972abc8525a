from typing import Any, Dict

from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI

from .config import ModelConfig


class LLMNotConfigured(RuntimeError):
    """Raised when a chat model is requested without an API key."""


def _model_kwargs(config: ModelConfig, token_key: str = "max_tokens") -> Dict[str, Any]:
    """
    Sampling and limit settings shared by every provider. `extra` wins over
    anything derived here.
    """
    kwargs: Dict[str, Any] = {"temperature": config.temperature}
    if config.max_output_tokens is not None:
        kwargs[token_key] = config.max_output_tokens
    if config.timeout_s is not None:
        kwargs["timeout"] = config.timeout_s
    kwargs.update(config.extra or {})
    return kwargs


def get_llm(config: ModelConfig) -> BaseChatModel:
    """
    Chat model for the configured provider, asked to answer with a JSON
    object where the provider supports it.
    """
    if config.api_key is None:
        raise LLMNotConfigured(
            f"No API key configured for LLM provider '{config.provider}'"
        )
    api_key = config.api_key.get_secret_value()

    if config.provider == "openai":
        return ChatOpenAI(
            model=config.model_name,
            api_key=api_key,
            model_kwargs={"response_format": {"type": "json_object"}},
            **_model_kwargs(config),
        )
    elif config.provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        # No JSON mode, the system prompt asks for JSON.
        return ChatAnthropic(
            model=config.model_name,
            api_key=api_key,
            **_model_kwargs(config),
        )
    elif config.provider == "google":
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=config.model_name,
            google_api_key=api_key,
            response_mime_type="application/json",
            **_model_kwargs(config, token_key="max_output_tokens"),
        )

    raise ValueError(f"Unsupported provider: {config.provider}")
