"""AI service wrapping LangChain chat models for one-shot completions."""

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Type

from langchain_openai import ChatOpenAI
from langchain_anthropic import ChatAnthropic
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_core.messages import HumanMessage, SystemMessage

from core.config import Settings
from core.errors import ConfigurationError
from core.logging import get_logger, log_execution_time, log_api_call

logger = get_logger(__name__)


# =============================================================================
# AI PROVIDER REGISTRY - Single source of truth for provider configurations
# =============================================================================

@dataclass
class ProviderConfig:
    """Configuration for an AI provider."""
    name: str
    model_class: Type
    api_key_param: str  # Parameter name for API key in model constructor
    max_tokens_param: str  # Parameter name for max tokens
    settings_key: str  # Settings attribute holding the API key
    detection_patterns: tuple  # Patterns to detect this provider from model name


PROVIDER_CONFIGS: Dict[str, ProviderConfig] = {
    'openai': ProviderConfig(
        name='openai',
        model_class=ChatOpenAI,
        api_key_param='openai_api_key',
        max_tokens_param='max_tokens',
        settings_key='openai_api_key',
        detection_patterns=('gpt', 'openai', 'o1', 'o3'),
    ),
    'anthropic': ProviderConfig(
        name='anthropic',
        model_class=ChatAnthropic,
        api_key_param='anthropic_api_key',
        max_tokens_param='max_tokens',
        settings_key='anthropic_api_key',
        detection_patterns=('claude', 'anthropic'),
    ),
    'gemini': ProviderConfig(
        name='gemini',
        model_class=ChatGoogleGenerativeAI,
        api_key_param='google_api_key',
        max_tokens_param='max_output_tokens',
        settings_key='google_ai_api_key',
        detection_patterns=('gemini', 'google'),
    ),
}


def detect_provider_from_model(model: str) -> str:
    """Detect AI provider from model name using registry patterns."""
    model_lower = model.lower()
    for provider_name, config in PROVIDER_CONFIGS.items():
        if any(pattern in model_lower for pattern in config.detection_patterns):
            return provider_name
    return 'openai'  # default


class AIService:
    """One-shot chat completions against the configured providers.

    Chat model instances are built lazily and reused per (provider, model).
    Errors propagate to the caller; retry and fallback policy live there.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._models: Dict[Tuple[str, str], Any] = {}

    def detect_provider(self, model: str) -> str:
        """Detect AI provider from model name."""
        return detect_provider_from_model(model)

    def get_api_key(self, provider: str) -> Optional[str]:
        config = PROVIDER_CONFIGS.get(provider)
        if not config:
            return None
        return getattr(self.settings, config.settings_key, None)

    def create_model(self, provider: str, api_key: str, model: str,
                     temperature: float, max_tokens: int):
        """Create LangChain model instance using provider registry."""
        config = PROVIDER_CONFIGS.get(provider)
        if not config:
            raise ConfigurationError(f"Unsupported provider: {provider}")

        kwargs = {
            config.api_key_param: api_key,
            'model': model,
            'temperature': temperature,
            config.max_tokens_param: max_tokens,
            'timeout': self.settings.ai_timeout,
        }

        return config.model_class(**kwargs)

    def get_model(self, model: str):
        provider = self.detect_provider(model)
        cached = self._models.get((provider, model))
        if cached is not None:
            return cached

        api_key = self.get_api_key(provider)
        if not api_key:
            raise ConfigurationError(f"API key for provider '{provider}' is not configured")

        chat_model = self.create_model(
            provider, api_key, model,
            self.settings.ai_temperature, self.settings.ai_max_tokens
        )
        self._models[(provider, model)] = chat_model
        logger.info("Chat model created", provider=provider, model=model)
        return chat_model

    async def complete(self, model: str, system_prompt: str, prompt: str) -> Any:
        """Send a persona + user prompt pair and return the raw message content.

        The content is usually ``str`` but some providers return content
        blocks; callers validate it.
        """
        start_time = time.time()
        provider = self.detect_provider(model)

        try:
            chat_model = self.get_model(model)

            messages = []
            if system_prompt:
                messages.append(SystemMessage(content=system_prompt))
            messages.append(HumanMessage(content=prompt))

            response = await chat_model.ainvoke(messages)
        except Exception as e:
            log_api_call(logger, provider, model, "chat", False, error=str(e))
            raise

        log_execution_time(logger, "ai_chat", start_time, time.time(), model=model)
        log_api_call(logger, provider, model, "chat", True)
        return response.content
