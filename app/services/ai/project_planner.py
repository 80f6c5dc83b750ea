"""
Multi-phase project planner.

A project plan is an ordered list of generation phases with declared
dependencies. Plans are validated when built: every dependency must name a
phase of the plan, the dependency graph must be acyclic, and the listed order
must already be a valid topological order. Execution then runs phases in that
order, feeding each phase the code produced by the phases before it.
"""
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.core.exceptions import PhaseDependencyException, PlanNotFoundException
from app.core.logging import log_operation_complete, log_operation_error, log_operation_start
from app.models.domain import (
    GenerationOptions,
    GenerationPhase,
    GenerationRequest,
    OutputKind,
    PhaseResult,
    ProjectGenerationPlan,
    ProjectGenerationResult,
)
from app.services.ai.code_generation_service import (
    BLUEPRINT_MAX_TOKENS,
    BLUEPRINT_TEMPERATURE,
    CODE_MAX_TOKENS,
    CODE_TEMPERATURE,
    PREVIOUS_CODE_VARIABLE,
    CodeGenerationService,
)
from app.services.ai.rate_limiter import RateLimitPolicy

logger = logging.getLogger(__name__)

PHASE_SEPARATOR = "\n\n---\n\n"

PhaseCallback = Callable[[Dict[str, Any]], Awaitable[None]]


def _phase(name, description, template, output_type, depends_on=None) -> GenerationPhase:
    return GenerationPhase(
        name=name,
        description=description,
        template=template,
        output_type=output_type,
        depends_on=list(depends_on or []),
    )


def _react_app(name: str) -> ProjectGenerationPlan:
    return ProjectGenerationPlan(
        id=str(uuid.uuid4()),
        name=f"{name} - React Application",
        description="Complete React application with components, routing, and state management",
        framework="react",
        estimated_cost=0.50,
        estimated_time=15,
        phases=[
            _phase("blueprint", "Generate application architecture and component structure",
                   "app-blueprint", OutputKind.BLUEPRINT),
            _phase("main-components", "Generate main application components",
                   "react-component", OutputKind.CODE, ["blueprint"]),
            _phase("routing", "Generate routing configuration",
                   "react-component", OutputKind.CONFIGURATION, ["main-components"]),
            _phase("state-management", "Generate state management setup",
                   "react-component", OutputKind.CODE, ["main-components"]),
        ],
    )


def _api_server(name: str) -> ProjectGenerationPlan:
    return ProjectGenerationPlan(
        id=str(uuid.uuid4()),
        name=f"{name} - API Server",
        description="Complete API server with endpoints, validation, and database integration",
        framework="node",
        estimated_cost=0.60,
        estimated_time=20,
        phases=[
            _phase("blueprint", "Generate API architecture and endpoint structure",
                   "app-blueprint", OutputKind.BLUEPRINT),
            _phase("database-schema", "Generate database schema and models",
                   "database-schema", OutputKind.CODE, ["blueprint"]),
            _phase("api-endpoints", "Generate API endpoints and controllers",
                   "api-endpoint", OutputKind.CODE, ["database-schema"]),
            _phase("middleware", "Generate authentication and validation middleware",
                   "api-endpoint", OutputKind.CODE, ["api-endpoints"]),
        ],
    )


def _fullstack(name: str) -> ProjectGenerationPlan:
    return ProjectGenerationPlan(
        id=str(uuid.uuid4()),
        name=f"{name} - Full Stack Application",
        description="Complete full-stack application with frontend, backend, and database",
        framework="fullstack",
        estimated_cost=1.20,
        estimated_time=35,
        phases=[
            _phase("blueprint", "Generate full-stack architecture",
                   "app-blueprint", OutputKind.BLUEPRINT),
            _phase("database-schema", "Generate database schema",
                   "database-schema", OutputKind.CODE, ["blueprint"]),
            _phase("api-endpoints", "Generate backend API",
                   "api-endpoint", OutputKind.CODE, ["database-schema"]),
            _phase("frontend-components", "Generate frontend components",
                   "react-component", OutputKind.CODE, ["api-endpoints"]),
            _phase("integration", "Generate API integration layer",
                   "react-component", OutputKind.CODE, ["frontend-components"]),
        ],
    )


def _component_library(name: str) -> ProjectGenerationPlan:
    return ProjectGenerationPlan(
        id=str(uuid.uuid4()),
        name=f"{name} - Component Library",
        description="Reusable component library with documentation and tests",
        framework="react",
        estimated_cost=0.40,
        estimated_time=12,
        phases=[
            _phase("blueprint", "Generate component library structure",
                   "app-blueprint", OutputKind.BLUEPRINT),
            _phase("base-components", "Generate base UI components",
                   "react-component", OutputKind.CODE, ["blueprint"]),
            _phase("composite-components", "Generate composite components",
                   "react-component", OutputKind.CODE, ["base-components"]),
            _phase("documentation", "Generate component documentation",
                   "documentation", OutputKind.DOCUMENTATION, ["composite-components"]),
        ],
    )


PLAN_FACTORIES: Dict[str, Callable[[str], ProjectGenerationPlan]] = {
    "react-app": _react_app,
    "api-server": _api_server,
    "fullstack": _fullstack,
    "component-library": _component_library,
}


def topological_order(phases: List[GenerationPhase]) -> List[str]:
    """
    Kahn's algorithm over the phases' dependency edges.

    Ties are broken by listed order, so an already well-ordered plan comes
    back unchanged.

    Raises:
        PhaseDependencyException: A dependency names an unknown phase, or the
            edges contain a cycle
    """
    names = [phase.name for phase in phases]
    known = set(names)
    indegree = {name: 0 for name in names}
    dependents: Dict[str, List[str]] = {name: [] for name in names}

    for phase in phases:
        unknown = [dep for dep in phase.depends_on if dep not in known]
        if unknown:
            raise PhaseDependencyException(phase.name, missing=unknown)
        for dep in phase.depends_on:
            indegree[phase.name] += 1
            dependents[dep].append(phase.name)

    ready = [name for name in names if indegree[name] == 0]
    order: List[str] = []
    while ready:
        current = ready.pop(0)
        order.append(current)
        for dependent in dependents[current]:
            indegree[dependent] -= 1
            if indegree[dependent] == 0:
                ready.append(dependent)
        ready.sort(key=names.index)

    if len(order) != len(names):
        stuck = [name for name in names if name not in order]
        raise PhaseDependencyException(stuck[0], missing=stuck[1:], reason=f"is part of a dependency cycle: {', '.join(stuck)}")
    return order


def validate_phase_order(phases: List[GenerationPhase]) -> None:
    """
    Check a phase list is runnable in the order given.

    Raises:
        PhaseDependencyException: Unknown dependency, cycle, or a phase
            listed before one of its dependencies
    """
    topological_order(phases)

    seen = set()
    for phase in phases:
        missing = [dep for dep in phase.depends_on if dep not in seen]
        if missing:
            raise PhaseDependencyException(phase.name, missing=missing)
        seen.add(phase.name)


def phase_options(phase: GenerationPhase) -> GenerationOptions:
    """Per-phase generation parameters, driven by the phase's output kind."""
    if phase.output_type == OutputKind.BLUEPRINT:
        return GenerationOptions(temperature=BLUEPRINT_TEMPERATURE, max_tokens=BLUEPRINT_MAX_TOKENS)

    is_code = phase.output_type == OutputKind.CODE
    return GenerationOptions(
        temperature=CODE_TEMPERATURE,
        max_tokens=CODE_MAX_TOKENS,
        include_tests=is_code,
        include_documentation=is_code,
    )


class ProjectPlanner:
    """Builds project plans and runs them phase by phase."""

    def __init__(self, orchestrator: CodeGenerationService, rate_limit_policy: Optional[RateLimitPolicy] = None):
        """
        Args:
            orchestrator: Code generation service used for every phase
            rate_limit_policy: Pause between phases (defaults to 1 second)
        """
        self.orchestrator = orchestrator
        self.rate_limit_policy = rate_limit_policy or RateLimitPolicy()

    @staticmethod
    def plan_types() -> List[str]:
        return list(PLAN_FACTORIES.keys())

    def create_project_plan(self, plan_type: str, name: str) -> ProjectGenerationPlan:
        """
        Build a fresh plan of the given type.

        Raises:
            PlanNotFoundException: Unknown plan type
        """
        factory = PLAN_FACTORIES.get(plan_type)
        if factory is None:
            raise PlanNotFoundException(plan_type)

        plan = factory(name)
        validate_phase_order(plan.phases)
        return plan

    async def generate_project(
        self,
        plan: ProjectGenerationPlan,
        variables: Dict[str, str],
        provider: Optional[str] = None,
        model: Optional[str] = None,
        on_phase: Optional[PhaseCallback] = None,
    ) -> ProjectGenerationResult:
        """
        Run every phase of a plan in order.

        From the second phase on, the phase variables include `previousCode`:
        the code of every earlier phase joined with a separator. Any phase
        failure aborts the run.

        Args:
            plan: Plan to execute
            variables: Template variables shared by all phases
            provider: Provider override for every phase
            model: Model override for every phase
            on_phase: Awaited with a `phase_started` / `phase_completed` event
                around each phase

        Raises:
            PhaseDependencyException: The plan's ordering is invalid; raised
                before any provider call
        """
        validate_phase_order(plan.phases)

        log_operation_start(
            logger=__name__,
            function="generate_project",
            operation="project_generation",
            message=f"Generating project '{plan.name}'",
            context={"plan_id": plan.id, "phases": [p.name for p in plan.phases]},
        )
        start_time = time.monotonic()
        results: List[PhaseResult] = []
        total_cost = 0.0
        total_tokens = 0
        total_phases = len(plan.phases)

        for index, phase in enumerate(plan.phases):
            if on_phase is not None:
                await on_phase({
                    "type": "phase_started",
                    "phase": phase.name,
                    "index": index,
                    "total": total_phases,
                })

            phase_variables = dict(variables)
            if results:
                phase_variables[PREVIOUS_CODE_VARIABLE] = PHASE_SEPARATOR.join(r.result.code for r in results)

            logger.info(f"Running phase {index + 1}/{total_phases}: {phase.name}")
            try:
                result = await self.orchestrator.generate_code(GenerationRequest(
                    template=phase.template,
                    variables=phase_variables,
                    framework=plan.framework,
                    provider=provider,
                    model=model,
                    options=phase_options(phase),
                ))
            except Exception as e:
                log_operation_error(
                    logger=__name__,
                    function="generate_project",
                    operation="project_generation",
                    error=e,
                    context={"plan_id": plan.id, "phase": phase.name},
                )
                raise

            results.append(PhaseResult(phase=phase, result=result))
            total_cost += result.metadata.cost
            total_tokens += result.metadata.tokens_used

            if on_phase is not None:
                await on_phase({
                    "type": "phase_completed",
                    "phase": phase.name,
                    "index": index,
                    "total": total_phases,
                    "tokens_used": result.metadata.tokens_used,
                    "cost": result.metadata.cost,
                })

            if index < total_phases - 1:
                await self.rate_limit_policy.wait_between_phases(phase.name)

        total_time = (time.monotonic() - start_time) / 60
        log_operation_complete(
            logger=__name__,
            function="generate_project",
            operation="project_generation",
            context={"plan_id": plan.id, "total_cost": total_cost, "total_tokens": total_tokens},
            duration=total_time * 60,
        )
        return ProjectGenerationResult(
            phases=results,
            total_cost=total_cost,
            total_time=total_time,
            total_tokens=total_tokens,
        )
