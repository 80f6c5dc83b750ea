"""
Prompt template registry.

A PromptTemplateRegistry is an ordinary object: the application builds one at
startup (seeded with the built-in catalogue) and hands it to the services that
need it, and tests can build their own with a fixed set of templates.
"""
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Union

from app.core.exceptions import ValidationException
from app.models.domain import PromptTemplate, RenderedPrompt, TemplateCategory, TemplateValidation
from app.services.ai.template_catalog import default_templates

logger = logging.getLogger(__name__)


def _is_blank(value: Optional[str]) -> bool:
    return value is None or str(value).strip() == ""


class PromptTemplateRegistry:
    """In-memory catalogue of prompt templates keyed by id."""

    def __init__(self, templates: Optional[Iterable[PromptTemplate]] = None):
        """
        Args:
            templates: Initial templates. Defaults to the built-in catalogue.
        """
        self._templates: Dict[str, PromptTemplate] = {}
        for template in (default_templates() if templates is None else templates):
            self._templates[template.id] = template

    def __len__(self) -> int:
        return len(self._templates)

    def __contains__(self, template_id: str) -> bool:
        return template_id in self._templates

    def get_template(self, template_id: str) -> Optional[PromptTemplate]:
        return self._templates.get(template_id)

    def get_all_templates(self) -> List[PromptTemplate]:
        return list(self._templates.values())

    def get_templates_by_category(self, category: Union[TemplateCategory, str]) -> List[PromptTemplate]:
        category_value = category.value if isinstance(category, TemplateCategory) else str(category)
        return [t for t in self._templates.values() if t.category.value == category_value]

    def get_templates_by_framework(self, framework: str) -> List[PromptTemplate]:
        """Templates for a framework; framework-agnostic templates always match."""
        return [
            t for t in self._templates.values()
            if t.framework is None or t.framework == framework
        ]

    def render_template(
        self,
        template_id: str,
        variables: Mapping[str, Optional[str]],
    ) -> Optional[RenderedPrompt]:
        """
        Substitute declared variables into a template's user prompt.

        Every `{name}` occurrence of each declared variable is replaced with
        its value. Variables that are absent or empty are rendered as
        `[name]`; checking for them is validate_template_variables' job.

        Returns:
            RenderedPrompt, or None if the template id is unknown
        """
        template = self._templates.get(template_id)
        if template is None:
            return None

        user_prompt = template.user_prompt_template
        for name in template.variables:
            value = variables.get(name)
            replacement = str(value) if value else f"[{name}]"
            user_prompt = user_prompt.replace("{" + name + "}", replacement)

        return RenderedPrompt(system_prompt=template.system_prompt, user_prompt=user_prompt)

    def validate_template_variables(
        self,
        template_id: str,
        variables: Mapping[str, Optional[str]],
    ) -> TemplateValidation:
        """
        Check that every declared variable has a non-blank value.

        An unknown template id is reported as invalid with no missing names.
        """
        template = self._templates.get(template_id)
        if template is None:
            return TemplateValidation(valid=False, missing_variables=[])

        missing = [name for name in template.variables if _is_blank(variables.get(name))]
        return TemplateValidation(valid=not missing, missing_variables=missing)

    def create_custom_template(self, template: PromptTemplate) -> None:
        """
        Insert a template, replacing any existing template with the same id.

        Raises:
            ValidationException: A declared variable never appears as
                `{name}` in the user prompt
        """
        unused = [
            name for name in template.variables
            if "{" + name + "}" not in template.user_prompt_template
        ]
        if unused:
            raise ValidationException(
                f"Template '{template.id}' declares variables its prompt never uses: {', '.join(unused)}"
            )

        if template.id in self._templates:
            logger.info(f"Overwriting prompt template '{template.id}'")
        else:
            logger.info(f"Registered custom prompt template '{template.id}'")
        self._templates[template.id] = template

    def search_templates(self, query: str) -> List[PromptTemplate]:
        """Case-insensitive substring search over name, description and category."""
        needle = query.lower()
        return [
            t for t in self._templates.values()
            if needle in t.name.lower()
            or needle in t.description.lower()
            or needle in t.category.value.lower()
        ]
