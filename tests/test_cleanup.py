import pytest
from sqlalchemy import update

from app.cli.commands import main
from app.database.models.generation_session import GenerationSession
from app.models.domain import SessionStatus, utcnow
from app.models.session_schemas import GenerationSessionRequest
from app.services.generation.cleanup import run_cleanup

from tests.conftest import USER_ID


@pytest.mark.asyncio
async def test_run_cleanup_uses_settings_defaults(session_service, session_factory, settings):
    settings.session_retention_days = 0
    record = await session_service.create(USER_ID, GenerationSessionRequest(prompt="A todo app"))
    await session_service.update_status(record.id, SessionStatus.CANCELLED)
    async with session_factory() as db:
        async with db.begin():
            await db.execute(
                update(GenerationSession)
                .where(GenerationSession.id == record.id)
                .values(created_at=utcnow().replace(year=2020))
            )

    assert await run_cleanup(session_service, settings) == 1
    assert await run_cleanup(session_service, settings) == 0


@pytest.mark.asyncio
async def test_run_cleanup_keeps_recent_sessions(session_service, settings):
    record = await session_service.create(USER_ID, GenerationSessionRequest(prompt="A todo app"))
    await session_service.update_status(record.id, SessionStatus.CANCELLED)

    assert await run_cleanup(session_service, settings, retention_days=30, batch_size=10) == 0


def test_cli_lists_templates(capsys):
    assert main(["templates", "--category", "documentation"]) == 0
    out = capsys.readouterr().out
    assert "documentation" in out
    assert "react-component" not in out


def test_cli_shows_plan(capsys):
    assert main(["plans", "react-app", "--name", "Shop"]) == 0
    out = capsys.readouterr().out
    assert "Shop - React Application" in out
    assert "state-management" in out


def test_cli_unknown_plan(capsys):
    assert main(["plans", "mobile"]) == 0
    assert "Unknown project plan type" in capsys.readouterr().out


def test_cli_without_command():
    assert main([]) == 1


@pytest.mark.asyncio
async def test_operation_logger_records_start_and_completion(caplog):
    from app.core.logging import operation_logger

    @operation_logger("demo_operation")
    async def double(value):
        return value * 2

    with caplog.at_level("INFO"):
        assert await double(4) == 8

    events = [getattr(r, "event", None) for r in caplog.records if r.name == __name__]
    assert events == ["operation_start", "operation_complete"]


def test_operation_logger_logs_errors(caplog):
    from app.core.logging import operation_logger

    @operation_logger("demo_operation")
    def explode():
        raise RuntimeError("boom")

    with caplog.at_level("INFO"):
        with pytest.raises(RuntimeError):
            explode()

    error = [r for r in caplog.records if getattr(r, "event", None) == "operation_error"]
    assert error[0].context["error_message"] == "boom"
