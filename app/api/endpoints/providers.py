"""
AI provider API endpoints.
"""
import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_generation_client
from app.models.generation_schemas import ProviderInfo, ProviderListResponse, ProviderTestResponse
from app.services.ai.generation_client import GenerationClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/providers", tags=["providers"])


@router.get("", response_model=ProviderListResponse)
async def list_providers(client: GenerationClient = Depends(get_generation_client)):
    """All known providers, and which of them have credentials configured."""
    return ProviderListResponse(
        providers=[ProviderInfo(**client.get_provider_config(name)) for name in client.provider_names],
        available=client.get_available_providers(),
        default_provider=client.settings.default_provider,
    )


@router.get("/{provider}", response_model=ProviderInfo)
async def get_provider(provider: str, client: GenerationClient = Depends(get_generation_client)):
    return ProviderInfo(**client.get_provider_config(provider))


@router.post("/{provider}/test", response_model=ProviderTestResponse)
async def test_provider(provider: str, client: GenerationClient = Depends(get_generation_client)):
    """
    Send a minimal request to a provider and report latency.

    A failed call is reported in the body (success=false), not as an HTTP error.
    """
    result = await client.test_provider(provider)
    logger.info(f"Provider test {provider}: success={result['success']} latency={result['latency_ms']}ms")
    return ProviderTestResponse(**result)
