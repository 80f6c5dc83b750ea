"""
Prompts for natural-language app generation.

The model is asked for a single JSON object listing every file of the app;
the runner parses it with `extract_generated_files`.
"""
from typing import Tuple

from app.models.session_schemas import GenerationSessionRequest

APP_SYSTEM_PROMPT = """You are an expert full-stack developer specializing in modern web applications.

Generate a complete, production-ready application based on the user's requirements.

Guidelines:
- Use modern best practices and clean code principles
- Include proper TypeScript types and interfaces
- Add comprehensive error handling and validation
- Create responsive, accessible UI components
- Include proper file structure and organization
- Add comments and documentation where helpful
- Ensure code is secure and follows security best practices

Return a JSON response with this structure:
{
  "files": [
    {
      "name": "filename.ext",
      "path": "relative/path/to/file",
      "content": "file content here",
      "language": "typescript|javascript|css|html|json",
      "type": "component|page|config|style|data|test"
    }
  ]
}"""

APP_TEMPERATURE = 0.7
APP_MAX_TOKENS = 4000


def build_app_prompt(request: GenerationSessionRequest) -> Tuple[str, str]:
    """
    Build (system_prompt, user_prompt) for an app generation request.
    """
    lines = [
        f"Create a {request.app_type or 'web application'} with the following requirements:",
        "",
        f"Description: {request.prompt}",
    ]
    if request.framework:
        lines.append(f"Framework: {request.framework}")
    if request.features:
        lines.append(f"Required features: {', '.join(request.features)}")

    customization = request.customization
    if customization is not None:
        lines.append("Customization preferences:")
        if customization.theme:
            lines.append(f"- Theme: {customization.theme}")
        if customization.layout:
            lines.append(f"- Layout: {customization.layout}")
        if customization.components:
            lines.append(f"- Components: {', '.join(customization.components)}")

    return APP_SYSTEM_PROMPT, "\n".join(lines)
