from abc import ABC, abstractmethod
from typing import Optional
from agno.models.base import Model
from agno.models.deepseek import DeepSeek
from agno.models.openai import OpenAIChat
from ..config import settings
from ..logger import get_logger

logger = get_logger(__name__)

class LLMProvider(ABC):
    """Abstract base class for LLM providers to ensure extensibility."""
    
    @abstractmethod
    def get_model(self, model_id: Optional[str] = None) -> Model:
        """
        Returns a configured Agno Model instance.
        
        Args:
            model_id (Optional[str]): The specific model identifier (e.g., 'gpt-4o', 'deepseek-chat').

        Returns:
            Model: The configured LLM model instance.
        """
        pass

class DeepSeekProvider(LLMProvider):
    """DeepSeek implementation."""

    def __init__(self, api_key: str):
        self.api_key = api_key
    
    def get_model(self, model_id: Optional[str] = None) -> Model:
        # Default to deepseek-chat if not specified
        return DeepSeek(
            id=model_id or "deepseek-chat",
            api_key=self.api_key
        )

class OpenAIProvider(LLMProvider):
    """OpenAI implementation."""

    def __init__(self, api_key: str):
        self.api_key = api_key

    def get_model(self, model_id: Optional[str] = None) -> Model:
        return OpenAIChat(
            id=model_id or "gpt-4o",
            api_key=self.api_key
        )

def get_provider() -> Optional[LLMProvider]:
    """
    Factory to get the configured provider.

    Returns:
        Optional[LLMProvider]: None when no API key is configured for the selected provider,
        which switches the pipeline to its deterministic fallbacks.
    """
    provider = settings.LLM_PROVIDER.lower()
    if provider == "openai":
        if settings.OPENAI_API_KEY:
            return OpenAIProvider(settings.OPENAI_API_KEY)
    elif provider == "deepseek":
        if settings.DEEPSEEK_API_KEY:
            return DeepSeekProvider(settings.DEEPSEEK_API_KEY)
    else:
        logger.warning(f"Unknown LLM provider '{settings.LLM_PROVIDER}'")
        return None

    logger.info(f"No API key configured for LLM provider '{provider}'. Reasoning service disabled.")
    return None
