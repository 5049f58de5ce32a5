# ============================================================================
# Language Models Configuration
# ============================================================================

from typing import Dict

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_groq import ChatGroq # LangChain-compatible wrapper around Groq-hosted LLMs

from chat_backend.config import Settings
from chat_backend.prompts import REASONING_MODEL


DEFAULT_CHAT_MODEL = "chat-model-small"
TITLE_MODEL = "title-model"
ARTIFACT_MODEL = "artifact-model"


class ModelProvider:
    """
    Maps the model variant names used by clients ("chat-model-small", ...)
    onto Groq-hosted chat models. Models are created lazily and reused.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._model_names = {
            "chat-model-small": settings.chat_model_small,
            "chat-model-large": settings.chat_model_large,
            REASONING_MODEL: settings.chat_model_reasoning,
            TITLE_MODEL: settings.title_model,
            ARTIFACT_MODEL: settings.artifact_model,
        }
        self._models: Dict[str, BaseChatModel] = {}

    def language_model(self, variant: str) -> BaseChatModel:
        if variant not in self._model_names:
            variant = DEFAULT_CHAT_MODEL

        if variant not in self._models:
            kwargs = {}
            if variant == REASONING_MODEL:
                # Returns chain-of-thought separately in additional_kwargs["reasoning_content"]
                kwargs["reasoning_format"] = "parsed"

            self._models[variant] = ChatGroq(
                model_name=self._model_names[variant],
                temperature=self.settings.llm_temperature,
                max_retries=self.settings.llm_max_retries,
                streaming=True, # Enables token-by-token streaming to the client
                **kwargs,
            )
        return self._models[variant]
