"""
OpenAI chat-completions client.
"""
import logging
from typing import Any, Dict, List

from app.core.exceptions import ProviderException
from app.models.domain import ChatMessage, ProviderResponse, TokenUsage
from app.services.ai.base_client import BaseProviderClient

logger = logging.getLogger(__name__)


class OpenAIClient(BaseProviderClient):
    """Client for the OpenAI chat completions API."""

    provider = "openai"

    def _endpoint(self) -> str:
        return f"{self.config['base_url'].rstrip('/')}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(
        self,
        messages: List[ChatMessage],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    def _parse_response(self, data: Dict[str, Any], model: str) -> ProviderResponse:
        """Read choices[0].message.content and the usage block."""
        try:
            choices = data.get("choices") or []
            if not choices:
                raise ProviderException(self.provider, "No choices in response")

            content = (choices[0].get("message") or {}).get("content") or ""
            if not isinstance(content, str):
                raise ProviderException(self.provider, "Message content is not text")
            usage = data.get("usage") or {}
            token_usage = TokenUsage(
                prompt_tokens=int(usage.get("prompt_tokens") or 0),
                completion_tokens=int(usage.get("completion_tokens") or 0),
            )
        except (TypeError, ValueError, AttributeError, KeyError) as e:
            raise ProviderException(self.provider, f"Unexpected response shape: {e}")

        if not content:
            logger.warning("OpenAI returned empty content")

        return ProviderResponse(
            content=content,
            provider=self.provider,
            model=data.get("model") or model,
            usage=token_usage,
        )
