"""LLM providers behind one capability interface.

Two call shapes are needed: reading a whole PDF (document understanding) and
completing over plain text. Each provider is created once per run from the
config and is never retried here; a failed call surfaces as ProviderCallError.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Type

from pydantic import BaseModel

from config import ExtractionConfig
from errors import ConfigurationError, ProviderCallError

logger = logging.getLogger(__name__)


@dataclass
class ProviderResponse:
    content_text: str
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: Optional[str] = None


class TextCompletionProvider(ABC):
    """What the extraction client needs from an LLM vendor."""

    name = "base"

    def __init__(self, model_name: str):
        self.model_name = model_name

    @abstractmethod
    def read_document(
        self,
        document_base64: str,
        media_type: str,
        filename: str,
        instruction: str,
        max_output_tokens: int,
        timeout: float,
        response_model: Optional[Type[BaseModel]] = None,
    ) -> ProviderResponse:
        """Send the whole binary document plus instructions in one call."""

    @abstractmethod
    def complete_text(
        self,
        text: str,
        instruction: str,
        max_output_tokens: int,
        timeout: float,
        response_model: Optional[Type[BaseModel]] = None,
    ) -> ProviderResponse:
        """Send plain text plus instructions in one call."""


class OpenAIProvider(TextCompletionProvider):
    name = "openai"

    def __init__(self, model_name: str, api_key: str, max_retries: int = 0, timeout: float = 300.0):
        from openai import OpenAI

        super().__init__(model_name)
        self._client = OpenAI(api_key=api_key, timeout=timeout, max_retries=max_retries)

    @staticmethod
    def _response_format(response_model: Optional[Type[BaseModel]]) -> dict:
        if response_model is None:
            return {"type": "json_object"}
        return {
            "type": "json_schema",
            "json_schema": {
                "name": response_model.__name__,
                "schema": response_model.model_json_schema(),
                # Optional fields are allowed to be absent
                "strict": False,
            },
        }

    def _create(self, messages: list, max_output_tokens: int, timeout: float,
                response_model: Optional[Type[BaseModel]], json_output: bool = True) -> ProviderResponse:
        import openai

        kwargs = {}
        if json_output:
            kwargs["response_format"] = self._response_format(response_model)
        try:
            completion = self._client.chat.completions.create(
                model=self.model_name,
                messages=messages,
                max_completion_tokens=max_output_tokens,
                timeout=timeout,
                **kwargs,
            )
        except openai.APIStatusError as e:
            raise ProviderCallError(f"OpenAI API error {e.status_code}: {e.message}", status_code=e.status_code) from e
        except openai.APIError as e:
            raise ProviderCallError(f"OpenAI request failed: {e}") from e

        if not completion.choices:
            raise ProviderCallError("OpenAI returned no choices")

        choice = completion.choices[0]
        content = choice.message.content
        if not content:
            refusal = getattr(choice.message, "refusal", None)
            raise ProviderCallError(f"Model refused: {refusal}" if refusal else "OpenAI returned empty content")

        usage = completion.usage
        return ProviderResponse(
            content_text=content,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            stop_reason=choice.finish_reason,
        )

    def read_document(self, document_base64, media_type, filename, instruction, max_output_tokens,
                      timeout, response_model=None) -> ProviderResponse:
        messages = [
            {"role": "system", "content": instruction},
            {
                "role": "user",
                "content": [
                    {
                        "type": "file",
                        "file": {
                            "filename": filename,
                            "file_data": f"data:{media_type};base64,{document_base64}",
                        },
                    },
                    {"type": "text", "text": "Extract according to the instructions."},
                ],
            },
        ]
        return self._create(messages, max_output_tokens, timeout, response_model,
                            json_output=response_model is not None)

    def complete_text(self, text, instruction, max_output_tokens, timeout,
                      response_model=None) -> ProviderResponse:
        messages = [
            {"role": "system", "content": instruction},
            {"role": "user", "content": text},
        ]
        return self._create(messages, max_output_tokens, timeout, response_model,
                            json_output=response_model is not None)


class AnthropicProvider(TextCompletionProvider):
    name = "anthropic"

    def __init__(self, model_name: str, api_key: str, max_retries: int = 0, timeout: float = 300.0):
        from anthropic import Anthropic

        super().__init__(model_name)
        self._client = Anthropic(api_key=api_key, timeout=timeout, max_retries=max_retries)

    def _create(self, content: list, instruction: str, max_output_tokens: int, timeout: float) -> ProviderResponse:
        import anthropic

        try:
            message = self._client.messages.create(
                model=self.model_name,
                max_tokens=max_output_tokens,
                system=instruction,
                messages=[{"role": "user", "content": content}],
                timeout=timeout,
            )
        except anthropic.APIStatusError as e:
            raise ProviderCallError(f"Anthropic API error {e.status_code}: {e.message}", status_code=e.status_code) from e
        except anthropic.APIError as e:
            raise ProviderCallError(f"Anthropic request failed: {e}") from e

        text = "".join(block.text for block in message.content if getattr(block, "type", None) == "text")
        if not text:
            raise ProviderCallError("Anthropic returned empty content")

        return ProviderResponse(
            content_text=text,
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
            stop_reason=message.stop_reason,
        )

    def read_document(self, document_base64, media_type, filename, instruction, max_output_tokens,
                      timeout, response_model=None) -> ProviderResponse:
        content = [
            {
                "type": "document",
                "source": {"type": "base64", "media_type": media_type, "data": document_base64},
            },
            {"type": "text", "text": "Extract according to the instructions. Respond with JSON only."},
        ]
        return self._create(content, instruction, max_output_tokens, timeout)

    def complete_text(self, text, instruction, max_output_tokens, timeout,
                      response_model=None) -> ProviderResponse:
        content = [
            {"type": "text", "text": text},
            {"type": "text", "text": "Extract according to the instructions. Respond with JSON only."},
        ]
        return self._create(content, instruction, max_output_tokens, timeout)


_PROVIDERS = {
    "openai": (OpenAIProvider, "OPENAI_API_KEY"),
    "anthropic": (AnthropicProvider, "ANTHROPIC_API_KEY"),
}


def get_provider(config: ExtractionConfig) -> TextCompletionProvider:
    """Create the provider named by the model config."""
    name = config.model.provider
    if name not in _PROVIDERS:
        raise ConfigurationError(f"Unknown provider: {name}. Use one of: {', '.join(sorted(_PROVIDERS))}")

    provider_cls, key_var = _PROVIDERS[name]
    api_key = os.getenv(key_var)
    if not api_key:
        raise ConfigurationError(f"{key_var} environment variable not set")

    logger.info("Using %s provider with model %s", name, config.model.name)
    return provider_cls(
        config.model.name,
        api_key=api_key,
        max_retries=config.provider_max_retries,
        timeout=config.request_timeout,
    )
