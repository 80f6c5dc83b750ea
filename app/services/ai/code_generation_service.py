"""
Code generation orchestrator.

Turns a template id plus variables into generated code, optionally followed
by a test suite and documentation for that code, and totals token usage and
cost across every provider call it made.
"""
import logging
import math
import time
from typing import Dict, List, Optional

from app.core.config import Settings
from app.core.exceptions import (
    AppGeneratorException,
    MissingVariablesException,
    TemplateNotFoundException,
)
from app.core.logging import log_operation_complete, log_operation_error, log_operation_start
from app.models.domain import (
    ChatMessage,
    CostEstimate,
    GenerationMetadata,
    GenerationOptions,
    GenerationRequest,
    GenerationResult,
    ProviderRequest,
    ProviderResponse,
    RenderedPrompt,
)
from app.services.ai.generation_client import GenerationClient
from app.services.ai.prompt_templates import PromptTemplateRegistry

logger = logging.getLogger(__name__)

PREVIOUS_CODE_VARIABLE = "previousCode"
DEFAULT_FRAMEWORK = "react"

CODE_TEMPERATURE = 0.3
CODE_MAX_TOKENS = 6000
TESTS_TEMPERATURE = 0.3
TESTS_MAX_TOKENS = 4000
DOCS_TEMPERATURE = 0.4
DOCS_MAX_TOKENS = 3000
BLUEPRINT_TEMPERATURE = 0.7
BLUEPRINT_MAX_TOKENS = 8000

# Cost estimate parameters
ESTIMATE_BASE_TOKENS = 2000
ESTIMATE_DEFAULT_MAX_TOKENS = 4000
TESTS_COST_MULTIPLIER = 0.6
DOCS_COST_MULTIPLIER = 0.4


class CodeGenerationService:
    """Orchestrates template-driven code generation."""

    def __init__(self, registry: PromptTemplateRegistry, client: GenerationClient, settings: Settings):
        """
        Args:
            registry: Template registry to resolve template ids against
            client: Provider client used for every call
            settings: Application settings
        """
        self.registry = registry
        self.client = client
        self.settings = settings

    def _render(self, request: GenerationRequest) -> RenderedPrompt:
        """Validate and render the request's template, before any network call."""
        template = self.registry.get_template(request.template)
        if template is None:
            raise TemplateNotFoundException(request.template)

        validation = self.registry.validate_template_variables(request.template, request.variables)
        if not validation.valid:
            raise MissingVariablesException(request.template, validation.missing_variables)

        rendered = self.registry.render_template(request.template, request.variables)

        previous_code = request.variables.get(PREVIOUS_CODE_VARIABLE)
        if previous_code and PREVIOUS_CODE_VARIABLE not in template.variables:
            rendered.user_prompt = (
                f"{rendered.user_prompt}\n\n"
                f"Context from previous phases (build on this, keep names consistent):\n\n"
                f"{previous_code}"
            )
        return rendered

    async def _call(
        self,
        prompt: RenderedPrompt,
        provider: str,
        model: Optional[str],
        temperature: float,
        max_tokens: int,
    ) -> ProviderResponse:
        return await self.client.send(ProviderRequest(
            messages=[
                ChatMessage(role="system", content=prompt.system_prompt),
                ChatMessage(role="user", content=prompt.user_prompt),
            ],
            provider=provider,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        ))

    async def generate_code(self, request: GenerationRequest) -> GenerationResult:
        """
        Generate code from a template, plus optional tests and documentation.

        Test and documentation failures don't fail the generation: the
        result comes back with `partial=True` and a warning per missing part.

        Raises:
            TemplateNotFoundException: Unknown template id
            MissingVariablesException: Required variables absent or blank
            UnsupportedProviderException: Unknown provider
            ProviderException: The main generation call failed
        """
        prompt = self._render(request)
        options = request.options
        provider = self.client.resolve_provider(request.provider)
        template = self.registry.get_template(request.template)
        framework = request.framework or template.framework or DEFAULT_FRAMEWORK

        log_operation_start(
            logger=__name__,
            function="generate_code",
            operation="code_generation",
            message=f"Generating code with template '{request.template}'",
            context={
                "template": request.template,
                "provider": provider,
                "include_tests": options.include_tests,
                "include_documentation": options.include_documentation,
            },
        )
        start_time = time.time()

        try:
            main = await self._call(
                prompt,
                provider=provider,
                model=request.model,
                temperature=CODE_TEMPERATURE if options.temperature is None else options.temperature,
                max_tokens=options.max_tokens or CODE_MAX_TOKENS,
            )
        except AppGeneratorException as e:
            log_operation_error(
                logger=__name__,
                function="generate_code",
                operation="code_generation",
                error=e,
                context={"template": request.template, "provider": provider},
            )
            raise

        result = GenerationResult(
            code=main.content,
            metadata=GenerationMetadata(
                template=request.template,
                framework=framework,
                provider=provider,
                model=main.model,
                tokens_used=main.usage.total_tokens,
                cost=main.cost,
            ),
        )

        if options.include_tests:
            tests = await self._generate_optional(
                "tests",
                "test-generator",
                self._test_variables(request.variables, main.content, framework),
                provider=provider,
                model=request.model,
                temperature=TESTS_TEMPERATURE,
                max_tokens=TESTS_MAX_TOKENS,
                result=result,
            )
            if tests is not None:
                result.tests = tests.content

        if options.include_documentation:
            docs = await self._generate_optional(
                "documentation",
                "documentation",
                self._documentation_variables(request.variables, main.content),
                provider=provider,
                model=request.model,
                temperature=DOCS_TEMPERATURE,
                max_tokens=DOCS_MAX_TOKENS,
                result=result,
            )
            if docs is not None:
                result.documentation = docs.content

        log_operation_complete(
            logger=__name__,
            function="generate_code",
            operation="code_generation",
            context={
                "template": request.template,
                "tokens_used": result.metadata.tokens_used,
                "cost": result.metadata.cost,
                "partial": result.partial,
            },
            duration=time.time() - start_time,
        )
        return result

    async def _generate_optional(
        self,
        label: str,
        template_id: str,
        variables: Dict[str, str],
        provider: str,
        model: Optional[str],
        temperature: float,
        max_tokens: int,
        result: GenerationResult,
    ) -> Optional[ProviderResponse]:
        """
        Run a secondary generation step and fold its usage into `result`.

        Returns None, and marks the result partial, if the step failed.
        """
        try:
            prompt = self.registry.render_template(template_id, variables)
            if prompt is None:
                raise TemplateNotFoundException(template_id)
            response = await self._call(prompt, provider, model, temperature, max_tokens)
        except AppGeneratorException as e:
            logger.warning(f"Optional {label} generation failed: {e.message}")
            result.partial = True
            result.warnings.append(f"{label} generation failed: {e.message}")
            return None

        result.metadata.tokens_used += response.usage.total_tokens
        result.metadata.cost += response.cost
        return response

    @staticmethod
    def _test_variables(variables: Dict[str, str], code: str, framework: str) -> Dict[str, str]:
        return {
            "subject": variables.get("componentName") or variables.get("endpointName") or "Generated Code",
            "language": "typescript",
            "code": code,
            "testTypes": "unit, integration",
            "testFramework": "Jest, React Testing Library" if framework == "react" else "Jest",
            "coverageFocus": "functionality, edge cases, error handling",
            "edgeCases": "null values, invalid inputs, boundary conditions",
            "additionalRequirements": "accessibility testing for UI components",
        }

    @staticmethod
    def _documentation_variables(variables: Dict[str, str], code: str) -> Dict[str, str]:
        return {
            "subject": variables.get("componentName") or variables.get("endpointName") or "Generated Code",
            "documentationType": "API Reference and Usage Guide",
            "audience": "developers",
            "language": "typescript",
            "code": code,
            "includeItems": "installation, usage examples, API reference, troubleshooting",
            "focusAreas": "practical examples, common use cases",
            "format": "markdown",
        }

    async def generate_blueprint(
        self,
        description: str,
        framework: str,
        features: List[str],
        target_users: str = "general users",
        scale: str = "small to medium",
        special_requirements: str = "none",
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> GenerationResult:
        """Generate an application blueprint, with documentation."""
        return await self.generate_code(GenerationRequest(
            template="app-blueprint",
            variables={
                "description": description,
                "framework": framework,
                "features": ", ".join(features),
                "targetUsers": target_users,
                "scale": scale,
                "specialRequirements": special_requirements,
            },
            framework=framework,
            provider=provider,
            model=model,
            options=GenerationOptions(
                temperature=BLUEPRINT_TEMPERATURE,
                max_tokens=BLUEPRINT_MAX_TOKENS,
                include_documentation=True,
            ),
        ))

    def estimate_generation_cost(self, request: GenerationRequest) -> CostEstimate:
        """
        Static cost estimate; makes no provider call.

        Tokens are a fixed prompt overhead, plus the variable text at four
        characters per token, plus the output limit. Tests and documentation
        scale the total by 0.6 and 0.4 respectively.

        Raises:
            TemplateNotFoundException: Unknown template id
        """
        if self.registry.get_template(request.template) is None:
            raise TemplateNotFoundException(request.template)

        provider = self.client.resolve_provider(request.provider)
        model = request.model or self.client.get_default_model(provider)

        variable_text = " ".join(str(v) for v in request.variables.values())
        estimated_tokens = (
            ESTIMATE_BASE_TOKENS
            + math.ceil(len(variable_text) / 4)
            + (request.options.max_tokens or ESTIMATE_DEFAULT_MAX_TOKENS)
        )

        multiplier = 1.0
        if request.options.include_tests:
            multiplier += TESTS_COST_MULTIPLIER
        if request.options.include_documentation:
            multiplier += DOCS_COST_MULTIPLIER

        base_cost = self.client.calculate_cost(provider, model, estimated_tokens)
        return CostEstimate(
            provider=provider,
            model=model,
            estimated_tokens=estimated_tokens,
            estimated_cost=base_cost * multiplier,
            multiplier=multiplier,
        )
