import json

import pytest

from app.core.exceptions import ProviderException
from app.models.domain import SessionStatus

from tests.conftest import APP_RESPONSE, OTHER_USER_ID, REACT_APP_VARIABLES, REACT_COMPONENT_VARIABLES, wait_for_runs

DONE = "[DONE]"


def _sse_payloads(body: str):
    payloads = []
    for chunk in body.split("\n\n"):
        if not chunk.startswith("data: "):
            continue
        data = chunk[len("data: "):]
        payloads.append(data if data == DONE else json.loads(data))
    return payloads


# Templates

@pytest.mark.asyncio
async def test_list_templates(api_client):
    response = await api_client.get("/api/templates")
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == len(body["templates"]) == 8


@pytest.mark.asyncio
async def test_list_templates_filters_combine(api_client):
    response = await api_client.get("/api/templates", params={"category": "implementation", "framework": "react"})
    ids = {t["id"] for t in response.json()["templates"]}
    assert "react-component" in ids
    assert "app-blueprint" not in ids


@pytest.mark.asyncio
async def test_get_unknown_template(api_client):
    response = await api_client.get("/api/templates/nope")
    assert response.status_code == 404
    assert response.json()["error"] == "Template not found: nope"


@pytest.mark.asyncio
async def test_create_and_render_template(api_client):
    created = await api_client.post("/api/templates", json={
        "id": "greeting",
        "name": "Greeting",
        "category": "implementation",
        "system_prompt": "Be nice.",
        "user_prompt_template": "Say hi to {name}, {name}!",
        "variables": ["name"],
    })
    assert created.status_code == 201

    rendered = await api_client.post("/api/templates/greeting/render", json={"variables": {"name": "Ada"}})
    assert rendered.status_code == 200
    assert rendered.json()["user_prompt"] == "Say hi to Ada, Ada!"


@pytest.mark.asyncio
async def test_create_template_rejects_unused_variable(api_client):
    response = await api_client.post("/api/templates", json={
        "id": "greeting",
        "name": "Greeting",
        "category": "implementation",
        "system_prompt": "Be nice.",
        "user_prompt_template": "Say hi!",
        "variables": ["name"],
    })
    assert response.status_code == 400
    assert response.json()["error"].startswith("Validation error:")


@pytest.mark.asyncio
async def test_create_template_rejects_bad_id(api_client):
    response = await api_client.post("/api/templates", json={
        "id": "Bad Id",
        "name": "x",
        "category": "implementation",
        "system_prompt": "x",
        "user_prompt_template": "x",
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_validate_template_variables(api_client):
    response = await api_client.post(
        "/api/templates/react-component/validate",
        json={"variables": {"componentName": "TodoList"}},
    )
    body = response.json()
    assert body["valid"] is False
    assert "purpose" in body["missing_variables"]
    assert "componentName" not in body["missing_variables"]


# Providers

@pytest.mark.asyncio
async def test_list_providers(api_client):
    response = await api_client.get("/api/providers")
    assert response.status_code == 200
    body = response.json()
    assert [p["name"] for p in body["providers"]] == ["openai", "anthropic"]
    assert body["default_provider"] == "openai"
    assert set(body["available"]) == {"openai", "anthropic"}
    assert all("api_key" not in p for p in body["providers"])


@pytest.mark.asyncio
async def test_provider_connectivity_test(api_client, provider):
    provider.replies = [ProviderException("openai", "HTTP 401: bad key")]
    response = await api_client.post("/api/providers/openai/test")
    assert response.status_code == 200
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_unknown_provider(api_client):
    response = await api_client.get("/api/providers/mistral")
    assert response.status_code == 400


# Synchronous generation

@pytest.mark.asyncio
async def test_generate_code(api_client, provider):
    response = await api_client.post("/api/generate/code", json={
        "template": "react-component",
        "variables": REACT_COMPONENT_VARIABLES,
        "options": {"include_documentation": True},
    })
    assert response.status_code == 200
    body = response.json()
    assert body["code"] == "generated code"
    assert body["documentation"] == "generated code"
    assert body["metadata"]["tokens_used"] == 300
    assert len(provider.calls) == 2


@pytest.mark.asyncio
async def test_generate_code_missing_variables(api_client, provider):
    response = await api_client.post("/api/generate/code", json={
        "template": "react-component",
        "variables": {"componentName": "X"},
    })
    assert response.status_code == 422
    assert "Missing required variables" in response.json()["error"]
    assert provider.calls == []


@pytest.mark.asyncio
async def test_generate_code_provider_failure(api_client, provider):
    provider.replies = [ProviderException("openai", "HTTP 500: down")]
    response = await api_client.post("/api/generate/code", json={
        "template": "react-component",
        "variables": REACT_COMPONENT_VARIABLES,
    })
    assert response.status_code == 502


@pytest.mark.asyncio
async def test_generate_code_unsupported_provider(api_client, provider):
    response = await api_client.post("/api/generate/code", json={
        "template": "react-component",
        "variables": REACT_COMPONENT_VARIABLES,
        "provider": "mistral",
    })
    assert response.status_code == 400
    assert response.json()["error"] == "Unsupported AI provider: mistral"
    assert provider.calls == []


@pytest.mark.asyncio
async def test_generate_requires_user(api_client):
    response = await api_client.post(
        "/api/generate/code",
        json={"template": "react-component", "variables": REACT_COMPONENT_VARIABLES},
        headers={"X-User-ID": ""},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_estimate(api_client, provider):
    response = await api_client.post("/api/generate/estimate", json={
        "template": "react-component",
        "variables": {},
        "options": {"include_tests": True, "include_documentation": True},
    })
    assert response.status_code == 200
    assert response.json()["multiplier"] == pytest.approx(2.0)
    assert provider.calls == []


@pytest.mark.asyncio
async def test_estimate_unknown_template(api_client):
    response = await api_client.post("/api/generate/estimate", json={"template": "react-componnet", "variables": {}})
    assert response.status_code == 404
    assert response.json()["error"] == "Template not found: react-componnet"


@pytest.mark.asyncio
async def test_generate_blueprint(api_client, provider):
    response = await api_client.post("/api/generate/blueprint", json={
        "description": "A todo app",
        "features": ["lists"],
    })
    assert response.status_code == 200
    assert response.json()["metadata"]["template"] == "app-blueprint"


# Projects

@pytest.mark.asyncio
async def test_plan_types(api_client):
    response = await api_client.get("/api/projects/plans")
    assert "react-app" in response.json()["plan_types"]


@pytest.mark.asyncio
async def test_plan_preview(api_client, provider):
    response = await api_client.get("/api/projects/plans/api-server", params={"name": "Shop"})
    body = response.json()
    assert body["name"] == "Shop - API Server"
    assert [p["name"] for p in body["phases"]][:2] == ["blueprint", "database-schema"]
    assert provider.calls == []


@pytest.mark.asyncio
async def test_unknown_plan(api_client):
    response = await api_client.get("/api/projects/plans/mobile")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_generate_project(api_client, provider):
    response = await api_client.post("/api/projects/generate", json={
        "plan_type": "react-app",
        "name": "Todo",
        "variables": REACT_APP_VARIABLES,
    })
    assert response.status_code == 200
    body = response.json()
    assert body["plan"]["name"] == "Todo - React Application"
    assert len(body["phases"]) == 4
    assert body["total_tokens"] == 8 * 150


# Background generations

async def _start(api_client, runner, payload=None):
    response = await api_client.post("/api/generations", json=payload or {"prompt": "A todo app"})
    assert response.status_code == 202
    session_id = response.json()["session_id"]
    await wait_for_runs(runner)
    return session_id


@pytest.mark.asyncio
async def test_start_and_fetch_generation(api_client, runner, provider):
    provider.replies = [APP_RESPONSE]

    response = await api_client.post("/api/generations", json={"prompt": "A todo app"})
    assert response.status_code == 202
    assert response.json()["status"] == "pending"
    session_id = response.json()["session_id"]
    await wait_for_runs(runner)

    status = await api_client.get(f"/api/generations/{session_id}/status")
    assert status.json()["status"] == "completed"
    assert status.json()["file_count"] == 2
    assert status.json()["running"] is False

    full = await api_client.get(f"/api/generations/{session_id}")
    body = full.json()
    assert body["files"][0]["path"] == "src/App.tsx"
    assert body["metadata"]["provider"] == "openai"
    assert body["request"]["prompt"] == "A todo app"


@pytest.mark.asyncio
async def test_start_rejects_unknown_template(api_client):
    response = await api_client.post("/api/generations", json={"template_id": "nope"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_start_rejects_unknown_plan(api_client):
    response = await api_client.post("/api/generations", json={"plan_type": "mobile"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_start_rejects_unsupported_provider(api_client, provider):
    response = await api_client.post("/api/generations", json={"prompt": "A todo app", "provider": "google"})
    assert response.status_code == 400
    assert provider.calls == []


@pytest.mark.asyncio
async def test_start_requires_a_mode(api_client):
    response = await api_client.post("/api/generations", json={"prompt": "   "})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_other_user_cannot_read(api_client, runner):
    session_id = await _start(api_client, runner)

    response = await api_client.get(f"/api/generations/{session_id}", headers={"X-User-ID": OTHER_USER_ID})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_missing_session(api_client):
    response = await api_client.get("/api/generations/does-not-exist/status")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_cancel_finished_generation_conflicts(api_client, runner, provider):
    provider.replies = [APP_RESPONSE]
    session_id = await _start(api_client, runner)

    response = await api_client.post(f"/api/generations/{session_id}/cancel")
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_cancel_pending_generation(api_client, session_service):
    from app.models.session_schemas import GenerationSessionRequest
    from tests.conftest import USER_ID

    session = await session_service.create(USER_ID, GenerationSessionRequest(prompt="A todo app"))

    response = await api_client.post(f"/api/generations/{session.id}/cancel")
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_list_and_stats(api_client, runner, provider):
    provider.replies = [APP_RESPONSE, ProviderException("openai", "HTTP 500: down")]
    await _start(api_client, runner)
    await _start(api_client, runner)

    listing = await api_client.get("/api/generations", params={"limit": 1})
    body = listing.json()
    assert len(body["sessions"]) == 1
    assert body["pagination"]["total"] == 2
    assert body["pagination"]["totalPages"] == 2
    assert body["pagination"]["hasNext"] is True

    failed = await api_client.get("/api/generations", params={"status": "failed"})
    assert failed.json()["pagination"]["total"] == 1

    stats = await api_client.get("/api/generations/stats")
    assert stats.json()["completed"] == 1
    assert stats.json()["failed"] == 1


@pytest.mark.asyncio
async def test_delete_generation(api_client, runner, session_service):
    session_id = await _start(api_client, runner)

    response = await api_client.delete(f"/api/generations/{session_id}")
    assert response.status_code == 204

    response = await api_client.get(f"/api/generations/{session_id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_stream_new_generation(api_client, provider):
    provider.replies = [APP_RESPONSE]

    response = await api_client.post("/api/generations/stream", json={"prompt": "A todo app"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    payloads = _sse_payloads(response.text)
    assert payloads[0]["type"] == "connected"
    assert [p["type"] for p in payloads[1:-1]] == ["status", "file", "file", "completed"]
    assert payloads[-1] == DONE


@pytest.mark.asyncio
async def test_stream_project_generation(api_client):
    response = await api_client.post("/api/generations/stream", json={
        "plan_type": "react-app",
        "variables": REACT_APP_VARIABLES,
    })
    payloads = _sse_payloads(response.text)
    phases = [p for p in payloads[:-1] if p["type"] == "phase"]
    assert len(phases) == 8
    assert payloads[-2]["type"] == "completed"
    assert payloads[-1] == DONE


@pytest.mark.asyncio
async def test_stream_failed_generation(api_client, provider):
    provider.replies = [ProviderException("openai", "HTTP 500: down")]

    response = await api_client.post("/api/generations/stream", json={"prompt": "A todo app"})

    payloads = _sse_payloads(response.text)
    assert payloads[-1]["type"] == "error"
    assert DONE not in payloads


@pytest.mark.asyncio
async def test_stream_finished_generation_snapshot(api_client, runner, provider):
    provider.replies = [APP_RESPONSE]
    session_id = await _start(api_client, runner)

    response = await api_client.get(f"/api/generations/{session_id}/stream")

    payloads = _sse_payloads(response.text)
    assert [p["type"] for p in payloads[:-1]] == ["connected", "status", "file", "file", "completed"]
    assert payloads[1]["status"] == SessionStatus.COMPLETED.value
    assert payloads[-1] == DONE


@pytest.mark.asyncio
async def test_stream_of_other_users_session(api_client, runner):
    session_id = await _start(api_client, runner)
    response = await api_client.get(
        f"/api/generations/{session_id}/stream",
        headers={"X-User-ID": OTHER_USER_ID},
    )
    assert response.status_code == 403
