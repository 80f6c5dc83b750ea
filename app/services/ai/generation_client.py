"""
Single-request generation client.

Routes one completion request to the selected provider binding, applies the
per-provider rate limit, and prices the result from the static price table.
"""
import logging
import math
import time
from typing import Any, Dict, List, Mapping, Optional

from app.core.config import Settings
from app.core.exceptions import ProviderException, UnsupportedProviderException
from app.models.domain import ChatMessage, ProviderRequest, ProviderResponse
from app.services.ai.anthropic_client import AnthropicClient
from app.services.ai.base_client import BaseProviderClient
from app.services.ai.cerebras_client import CerebrasClient
from app.services.ai.google_client import GoogleClient
from app.services.ai.openai_client import OpenAIClient
from app.services.ai.rate_limiter import ProviderRateLimiter

logger = logging.getLogger(__name__)

PROVIDER_CLIENT_CLASSES = {
    "openai": OpenAIClient,
    "anthropic": AnthropicClient,
    "google": GoogleClient,
    "cerebras": CerebrasClient,
}

TEST_PROMPT = "Hello! This is a connectivity test. Please respond with just 'OK'."


class GenerationClient:
    """Dispatches provider requests and reports usage and cost."""

    def __init__(
        self,
        settings: Settings,
        clients: Optional[Mapping[str, BaseProviderClient]] = None,
        rate_limiter: Optional[ProviderRateLimiter] = None,
    ):
        """
        Args:
            settings: Application settings
            clients: Provider bindings keyed by provider name. Defaults to one
                instance of each built-in binding.
            rate_limiter: Per-provider throttle. Defaults to the configured one.
        """
        self.settings = settings
        if clients is None:
            clients = {name: cls(settings) for name, cls in PROVIDER_CLIENT_CLASSES.items()}
        self._clients: Dict[str, BaseProviderClient] = dict(clients)
        self._rate_limiter = rate_limiter or ProviderRateLimiter.from_settings(settings)

    def _get_client(self, provider: str) -> BaseProviderClient:
        client = self._clients.get(provider)
        if client is None:
            raise UnsupportedProviderException(provider)
        return client

    def resolve_provider(self, provider: Optional[str]) -> str:
        """Return the provider to use, validating it is known."""
        name = provider or self.settings.default_provider
        self._get_client(name)
        return name

    def get_default_model(self, provider: str) -> str:
        return self._get_client(provider).default_model

    async def send(self, request: ProviderRequest) -> ProviderResponse:
        """
        Send one request to exactly one provider.

        Raises:
            UnsupportedProviderException: Unknown provider name
            ProviderException: The provider call failed
        """
        provider = self.resolve_provider(request.provider)
        client = self._get_client(provider)
        model = request.model or client.default_model

        await self._rate_limiter.acquire(provider)

        response = await client.complete(
            request.messages,
            model=model,
            temperature=request.temperature,
            max_tokens=request.max_tokens,
        )
        response.cost = self.calculate_cost(provider, response.model, response.usage.total_tokens)

        logger.info(
            f"{provider}/{response.model} generated {len(response.content)} chars, "
            f"{response.usage.total_tokens} tokens, cost ${response.cost:.6f}"
        )
        return response

    def cost_per_token(self, provider: str, model: Optional[str] = None) -> float:
        """Per-model override if configured, else the provider's flat rate."""
        if model:
            override = self.settings.model_price_overrides.get(f"{provider}:{model}")
            if override is not None:
                return override
        return self._get_client(provider).config["cost_per_token"]

    def calculate_cost(self, provider: str, model: Optional[str], total_tokens: int) -> float:
        """Advisory cost for a token count; not used for billing."""
        return total_tokens * self.cost_per_token(provider, model)

    @property
    def provider_names(self) -> List[str]:
        """Every provider with a registered binding, configured or not."""
        return list(self._clients)

    def get_available_providers(self) -> List[str]:
        """Providers that have a credential configured."""
        return [name for name, client in self._clients.items() if client.is_configured]

    def get_provider_config(self, provider: str) -> Dict[str, Any]:
        """Public provider description (credentials are never returned)."""
        client = self._get_client(provider)
        config = {key: value for key, value in client.config.items() if key != "api_key"}
        config["configured"] = client.is_configured
        return config

    def estimate_request_cost(self, request: ProviderRequest) -> Dict[str, Any]:
        """Estimate cost without calling the provider (4 characters per token)."""
        provider = self.resolve_provider(request.provider)
        model = request.model or self.get_default_model(provider)
        total_chars = sum(len(message.content) for message in request.messages)
        estimated_tokens = math.ceil(total_chars / 4)
        return {
            "provider": provider,
            "model": model,
            "estimated_tokens": estimated_tokens,
            "estimated_cost": estimated_tokens * self.cost_per_token(provider, model),
        }

    async def test_provider(self, provider: str) -> Dict[str, Any]:
        """
        Issue one minimal request and measure latency.

        Returns:
            Dict with provider, success, latency_ms and error (None on success)
        """
        self._get_client(provider)
        start_time = time.time()
        try:
            await self.send(ProviderRequest(
                messages=[ChatMessage(role="user", content=TEST_PROMPT)],
                provider=provider,
                max_tokens=10,
            ))
        except ProviderException as e:
            latency_ms = int((time.time() - start_time) * 1000)
            logger.warning(f"Provider test failed for {provider}: {e.message}")
            return {"provider": provider, "success": False, "latency_ms": latency_ms, "error": e.message}

        latency_ms = int((time.time() - start_time) * 1000)
        return {"provider": provider, "success": True, "latency_ms": latency_ms, "error": None}
