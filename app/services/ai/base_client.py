"""
Base provider client with common functionality for all AI provider bindings.
"""
import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp

from app.core.config import Settings
from app.core.exceptions import ProviderException
from app.models.domain import ChatMessage, ProviderResponse

logger = logging.getLogger(__name__)


class BaseProviderClient:
    """
    Base class with common functionality for all provider clients.

    Subclasses set `provider` and implement `_endpoint`, `_headers`,
    `_build_payload` and `_parse_response`. Requests are made with aiohttp so
    that cancelling the awaiting task aborts the HTTP call in flight.
    """

    provider: str = ""
    default_temperature: float = 0.7
    default_max_tokens: int = 4000

    def __init__(self, settings: Settings):
        """
        Args:
            settings: Application settings
        """
        self.settings = settings
        self.config = settings.get_provider_config(self.provider)
        self.timeout = settings.provider_request_timeout

    @property
    def api_key(self) -> Optional[str]:
        return self.config.get("api_key")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def default_model(self) -> str:
        return self.config["default_model"]

    async def complete(
        self,
        messages: List[ChatMessage],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ProviderResponse:
        """
        Run one completion against this provider.

        Args:
            messages: Ordered conversation (system/user/assistant)
            model: Model id, provider default if None
            temperature: Sampling temperature, provider default if None
            max_tokens: Output token limit, provider default if None

        Returns:
            ProviderResponse with content and token usage (cost is filled in
            by the GenerationClient)

        Raises:
            ProviderException: On missing credentials, network, HTTP or
                response-shape errors
        """
        if not self.is_configured:
            raise ProviderException(self.provider, "API key not configured")

        model = model or self.default_model
        payload = self._build_payload(
            messages,
            model=model,
            temperature=self.default_temperature if temperature is None else temperature,
            max_tokens=self.default_max_tokens if max_tokens is None else max_tokens,
        )
        self._log_request(payload)
        data = await self._make_request(self._endpoint(), payload, self._headers())
        return self._parse_response(data, model)

    def _endpoint(self) -> str:
        raise NotImplementedError

    def _headers(self) -> Dict[str, str]:
        raise NotImplementedError

    def _build_payload(
        self,
        messages: List[ChatMessage],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> Dict[str, Any]:
        raise NotImplementedError

    def _parse_response(self, data: Dict[str, Any], model: str) -> ProviderResponse:
        raise NotImplementedError

    async def _make_request(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Dict[str, str],
    ) -> Dict[str, Any]:
        """
        POST a JSON payload and return the decoded JSON body.

        No retries: a failed call is surfaced to the caller as a generation
        failure.

        Raises:
            ProviderException: On non-200 status, invalid JSON, timeout or
                connection error
        """
        start_time = time.time()
        logger.info(f"Calling {self.provider} ({payload.get('model')})")

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url,
                    json=payload,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    duration = time.time() - start_time
                    logger.info(
                        f"{self.provider} API response: "
                        f"status={response.status}, duration={duration:.2f}s"
                    )

                    if response.status != 200:
                        text = await response.text()
                        error_msg = f"HTTP {response.status}: {text[:200]}"
                        logger.error(f"{self.provider} API error: {error_msg}")
                        raise ProviderException(self.provider, error_msg)

                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        error_msg = f"Invalid JSON response: {str(e)}"
                        logger.error(f"{self.provider} response parse error: {error_msg}")
                        raise ProviderException(self.provider, error_msg)

        except asyncio.TimeoutError:
            error_msg = f"Request timeout after {self.timeout}s"
            logger.error(f"{self.provider} timeout: {error_msg}")
            raise ProviderException(self.provider, error_msg)

        except aiohttp.ClientError as e:
            error_msg = f"Connection error: {str(e)}"
            logger.error(f"{self.provider} connection error: {error_msg}")
            raise ProviderException(self.provider, error_msg)

    def _log_request(self, payload: Dict[str, Any]) -> None:
        """Log provider request for debugging."""
        message_count = len(payload.get("messages", []))
        logger.debug(
            f"{self.provider} request: "
            f"{message_count} messages, "
            f"model={payload.get('model')}, "
            f"temperature={payload.get('temperature', 'N/A')}, "
            f"max_tokens={payload.get('max_tokens', 'N/A')}"
        )


class PlaceholderProviderClient(BaseProviderClient):
    """A provider that is listed and priced but has no binding yet."""

    async def complete(
        self,
        messages: List[ChatMessage],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ProviderResponse:
        raise ProviderException(
            self.provider,
            f"{self.config['display_name']} integration not yet implemented",
        )
