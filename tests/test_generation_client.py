import pytest

from app.core.config import Settings
from app.core.exceptions import ProviderException, UnsupportedProviderException
from app.models.domain import ChatMessage, ProviderRequest
from app.services.ai.anthropic_client import AnthropicClient
from app.services.ai.generation_client import GenerationClient
from app.services.ai.google_client import GoogleClient
from app.services.ai.openai_client import OpenAIClient
from app.services.ai.rate_limiter import ProviderRateLimiter, RateLimitPolicy, TokenBucket

from tests.conftest import FakeProviderClient


def _request(provider=None, **kwargs):
    return ProviderRequest(
        messages=[ChatMessage(role="system", content="sys"), ChatMessage(role="user", content="hi")],
        provider=provider,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_send_prices_response(generation_client, provider):
    response = await generation_client.send(_request(temperature=0.0, max_tokens=10))

    assert response.content == "generated code"
    assert response.usage.total_tokens == 150
    assert response.cost == pytest.approx(150 * 0.00001)
    assert provider.calls[0]["temperature"] == 0.0
    assert provider.calls[0]["max_tokens"] == 10


@pytest.mark.asyncio
async def test_send_uses_default_provider_and_model(generation_client, provider, settings):
    response = await generation_client.send(_request())
    assert response.provider == "openai"
    assert response.model == settings.openai_default_model
    assert len(provider.calls) == 1


@pytest.mark.asyncio
async def test_unknown_provider_rejected(generation_client):
    with pytest.raises(UnsupportedProviderException) as exc_info:
        await generation_client.send(_request(provider="mistral"))
    assert exc_info.value.status_code == 400


def test_model_price_override(settings, provider):
    settings.model_price_overrides = {"openai:gpt-4o-mini": 0.000001}
    client = GenerationClient(settings, clients={"openai": provider}, rate_limiter=ProviderRateLimiter(0, 1))
    assert client.calculate_cost("openai", "gpt-4o-mini", 1000) == pytest.approx(0.001)
    assert client.calculate_cost("openai", "gpt-4o", 1000) == pytest.approx(0.01)


def test_estimate_request_cost_rounds_up(generation_client):
    estimate = generation_client.estimate_request_cost(ProviderRequest(
        messages=[ChatMessage(role="user", content="x" * 9)],
    ))
    assert estimate["estimated_tokens"] == 3
    assert estimate["provider"] == "openai"


def test_provider_config_hides_credentials(generation_client):
    config = generation_client.get_provider_config("openai")
    assert "api_key" not in config
    assert config["configured"] is True
    assert config["display_name"] == "OpenAI"


def test_available_providers_need_credentials(settings):
    settings.anthropic_api_key = None
    client = GenerationClient(settings)
    assert "openai" in client.get_available_providers()
    assert "anthropic" not in client.get_available_providers()
    assert client.provider_names == ["openai", "anthropic", "google", "cerebras"]


def test_provider_names_follow_registered_bindings(generation_client):
    assert generation_client.provider_names == ["openai", "anthropic"]


@pytest.mark.asyncio
async def test_provider_test_reports_failure(settings):
    failing = FakeProviderClient(settings, replies=[ProviderException("openai", "HTTP 500: boom")])
    client = GenerationClient(settings, clients={"openai": failing}, rate_limiter=ProviderRateLimiter(0, 1))

    result = await client.test_provider("openai")

    assert result["success"] is False
    assert "HTTP 500" in result["error"]
    assert result["latency_ms"] >= 0


@pytest.mark.asyncio
async def test_provider_test_reports_success(generation_client):
    result = await generation_client.test_provider("openai")
    assert result == {"provider": "openai", "success": True, "latency_ms": result["latency_ms"], "error": None}


@pytest.mark.asyncio
async def test_placeholder_provider_raises(settings):
    settings.google_api_key = "g-key"
    with pytest.raises(ProviderException) as exc_info:
        await GoogleClient(settings).complete([ChatMessage(role="user", content="hi")])
    assert "not yet implemented" in exc_info.value.message


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_request(settings):
    settings.openai_api_key = None
    with pytest.raises(ProviderException) as exc_info:
        await OpenAIClient(settings).complete([ChatMessage(role="user", content="hi")])
    assert "API key not configured" in exc_info.value.message


def test_openai_payload_and_response(settings):
    client = OpenAIClient(settings)
    payload = client._build_payload(
        [ChatMessage(role="system", content="sys"), ChatMessage(role="user", content="hi")],
        model="gpt-4o", temperature=0.3, max_tokens=100,
    )
    assert payload["messages"][0] == {"role": "system", "content": "sys"}
    assert client._headers()["Authorization"] == "Bearer sk-test"

    response = client._parse_response({
        "model": "gpt-4o-2024",
        "choices": [{"message": {"content": "code"}}],
        "usage": {"prompt_tokens": 7, "completion_tokens": 3},
    }, "gpt-4o")
    assert response.content == "code"
    assert response.model == "gpt-4o-2024"
    assert response.usage.total_tokens == 10


def test_openai_response_without_choices(settings):
    with pytest.raises(ProviderException):
        OpenAIClient(settings)._parse_response({"choices": []}, "gpt-4o")


def test_openai_null_usage_counts_as_zero(settings):
    response = OpenAIClient(settings)._parse_response({
        "choices": [{"message": {"content": "x"}}],
        "usage": {"prompt_tokens": None, "completion_tokens": None},
    }, "gpt-4o")
    assert response.content == "x"
    assert response.usage.total_tokens == 0


@pytest.mark.parametrize("data", [
    {"choices": ["oops"]},
    {"choices": [{"message": {"content": ["not", "text"]}}]},
    {"choices": [{"message": {"content": "x"}}], "usage": {"prompt_tokens": "many"}},
    ["not", "an", "object"],
])
def test_openai_malformed_response_is_provider_error(settings, data):
    with pytest.raises(ProviderException) as exc_info:
        OpenAIClient(settings)._parse_response(data, "gpt-4o")
    assert exc_info.value.provider == "openai"



def test_anthropic_moves_system_prompt(settings):
    client = AnthropicClient(settings)
    payload = client._build_payload(
        [ChatMessage(role="system", content="sys"), ChatMessage(role="user", content="hi")],
        model="claude", temperature=0.7, max_tokens=100,
    )
    assert payload["system"] == "sys"
    assert payload["messages"] == [{"role": "user", "content": "hi"}]
    assert client._headers()["x-api-key"] == "sk-ant-test"

    response = client._parse_response({
        "content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}],
        "usage": {"input_tokens": 4, "output_tokens": 6},
    }, "claude")
    assert response.content == "ab"
    assert response.usage.total_tokens == 10


@pytest.mark.parametrize("data", [
    {"content": ["oops"]},
    {"content": None},
    {"content": [{"type": "text", "text": "a"}], "usage": {"input_tokens": {}}},
])
def test_anthropic_malformed_response_is_provider_error(settings, data):
    with pytest.raises(ProviderException) as exc_info:
        AnthropicClient(settings)._parse_response(data, "claude")
    assert exc_info.value.provider == "anthropic"



def test_token_bucket_burst():
    bucket = TokenBucket(rate=0.001, burst_size=2)
    assert bucket.try_acquire()
    assert bucket.try_acquire()
    assert not bucket.try_acquire()


def test_rate_limiter_disabled_with_zero_rate():
    assert not ProviderRateLimiter(0, 5).enabled
    assert ProviderRateLimiter(60, 5).enabled


def test_phase_policy_from_settings():
    settings = Settings(_env_file=None, phase_delay_seconds=2.5)
    assert RateLimitPolicy.from_settings(settings).phase_delay_seconds == 2.5
