"""
Anthropic Messages API client.
"""
import logging
from typing import Any, Dict, List

from app.core.exceptions import ProviderException
from app.models.domain import ChatMessage, ProviderResponse, TokenUsage
from app.services.ai.base_client import BaseProviderClient

logger = logging.getLogger(__name__)


class AnthropicClient(BaseProviderClient):
    """
    Client for the Anthropic Messages API.

    The Messages API takes the system prompt as a top-level field, so system
    messages are pulled out of the conversation before sending.
    """

    provider = "anthropic"

    def _endpoint(self) -> str:
        return f"{self.config['base_url'].rstrip('/')}/messages"

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key or "",
            "anthropic-version": self.settings.anthropic_version,
            "Content-Type": "application/json",
        }

    def _build_payload(
        self,
        messages: List[ChatMessage],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> Dict[str, Any]:
        system_parts = [m.content for m in messages if m.role == "system"]
        payload: Dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [
                {"role": m.role, "content": m.content}
                for m in messages
                if m.role != "system"
            ],
        }
        if system_parts:
            payload["system"] = "\n\n".join(system_parts)
        return payload

    def _parse_response(self, data: Dict[str, Any], model: str) -> ProviderResponse:
        try:
            blocks = data.get("content")
            if not isinstance(blocks, list):
                raise ProviderException(self.provider, "No content blocks in response")

            content = "".join(
                block.get("text") or "" for block in blocks if block.get("type") == "text"
            )
            usage = data.get("usage") or {}
            token_usage = TokenUsage(
                prompt_tokens=int(usage.get("input_tokens") or 0),
                completion_tokens=int(usage.get("output_tokens") or 0),
            )
        except (TypeError, ValueError, AttributeError, KeyError) as e:
            raise ProviderException(self.provider, f"Unexpected response shape: {e}")

        if not content:
            logger.warning("Anthropic returned empty content")

        return ProviderResponse(
            content=content,
            provider=self.provider,
            model=data.get("model") or model,
            usage=token_usage,
        )
