"""
CLI for operating the generation service.

Usage:
    python -m app.cli templates
    python -m app.cli templates --category implementation
    python -m app.cli plans
    python -m app.cli plans react-app --name "Shop"
    python -m app.cli providers
    python -m app.cli cleanup
    python -m app.cli cleanup --days 7 --batch-size 500
"""
import argparse
import asyncio
from typing import Optional

from app.core.config import get_settings
from app.core.logging import setup_logging
from app.core.exceptions import PlanNotFoundException
from app.database.session import close_db, get_session_factory, init_db
from app.services.ai.code_generation_service import CodeGenerationService
from app.services.ai.generation_client import GenerationClient
from app.services.ai.project_planner import ProjectPlanner
from app.services.ai.prompt_templates import PromptTemplateRegistry
from app.services.generation.cleanup import run_cleanup
from app.services.generation.session_service import GenerationSessionService


def list_templates(category: Optional[str] = None):
    """List the built-in prompt templates."""
    registry = PromptTemplateRegistry()
    templates = registry.get_templates_by_category(category) if category else registry.get_all_templates()

    print(f"\n{'Template':<20} {'Category':<16} {'Framework':<10} {'Variables'}")
    print("=" * 100)
    for template in templates:
        print(f"{template.id:<20} {template.category.value:<16} {template.framework or '-':<10} {', '.join(template.variables)}")
    print(f"\nTotal: {len(templates)} template(s)")


def show_plans(plan_type: Optional[str] = None, name: str = "My Project"):
    """List plan types, or show the phases of one."""
    settings = get_settings()
    registry = PromptTemplateRegistry()
    planner = ProjectPlanner(CodeGenerationService(registry, GenerationClient(settings), settings))

    if plan_type is None:
        print("\nPlan types:")
        for available in planner.plan_types():
            print(f"  - {available}")
        return

    try:
        plan = planner.create_project_plan(plan_type, name)
    except PlanNotFoundException as e:
        print(f"\nError: {e.message}")
        print(f"Available plan types: {', '.join(planner.plan_types())}")
        return

    print(f"\n{plan.name}")
    print(f"{plan.description}")
    print(f"Framework: {plan.framework}  Estimated: ${plan.estimated_cost:.2f}, ~{plan.estimated_time} min")
    print("=" * 80)
    for index, phase in enumerate(plan.phases, start=1):
        after = f" (after {', '.join(phase.depends_on)})" if phase.depends_on else ""
        print(f"  {index}. {phase.name:<22} {phase.template:<18} {phase.output_type.value}{after}")


def list_providers():
    """Show providers and whether credentials are configured."""
    client = GenerationClient(get_settings())
    print(f"\n{'Provider':<12} {'Default model':<30} {'Configured'}")
    print("=" * 60)
    for name in client.provider_names:
        config = client.get_provider_config(name)
        print(f"{name:<12} {config['default_model']:<30} {'Yes' if config['configured'] else 'No'}")


async def _cleanup(days: Optional[int], batch_size: Optional[int]) -> int:
    settings = get_settings()
    await init_db(settings)
    try:
        service = GenerationSessionService(get_session_factory())
        return await run_cleanup(service, settings, retention_days=days, batch_size=batch_size)
    finally:
        await close_db()


def cleanup_sessions(days: Optional[int] = None, batch_size: Optional[int] = None):
    """Delete expired failed/cancelled generation sessions."""
    deleted = asyncio.run(_cleanup(days, batch_size))
    print(f"\n✓ Deleted {deleted} expired generation session(s)")


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="AppForge generation service tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the retention cleanup once (e.g. from cron)
  python -m app.cli cleanup

  # Keep only a week of failed/cancelled sessions
  python -m app.cli cleanup --days 7

  # Show the phases of a project plan
  python -m app.cli plans fullstack --name "Shop"
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    templates_parser = subparsers.add_parser('templates', help='List prompt templates')
    templates_parser.add_argument('--category', help='Only templates in this category')

    plans_parser = subparsers.add_parser('plans', help='List plan types or show a plan')
    plans_parser.add_argument('plan_type', nargs='?', help='Plan type to show')
    plans_parser.add_argument('--name', default='My Project', help='Project name for the preview')

    subparsers.add_parser('providers', help='List AI providers')

    cleanup_parser = subparsers.add_parser('cleanup', help='Delete expired generation sessions')
    cleanup_parser.add_argument('--days', type=int, help='Retention window in days (default: settings)')
    cleanup_parser.add_argument('--batch-size', type=int, help='Sessions deleted per batch (default: settings)')

    args = parser.parse_args(argv)

    if args.command == 'templates':
        list_templates(args.category)
    elif args.command == 'plans':
        show_plans(args.plan_type, args.name)
    elif args.command == 'providers':
        list_providers()
    elif args.command == 'cleanup':
        settings = get_settings()
        setup_logging(log_level=settings.log_level, log_dir=settings.log_dir, console=settings.log_to_console)
        cleanup_sessions(args.days, args.batch_size)
    else:
        parser.print_help()
        return 1
    return 0
