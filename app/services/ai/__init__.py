"""
AI services for the AppForge generation API.
Handles provider calls, prompt templates, code generation and project plans.
"""

# Provider clients
from app.services.ai.base_client import BaseProviderClient, PlaceholderProviderClient
from app.services.ai.openai_client import OpenAIClient
from app.services.ai.anthropic_client import AnthropicClient
from app.services.ai.google_client import GoogleClient
from app.services.ai.cerebras_client import CerebrasClient
from app.services.ai.generation_client import GenerationClient

# Rate limiting
from app.services.ai.rate_limiter import ProviderRateLimiter, RateLimitPolicy

# Templates
from app.services.ai.prompt_templates import PromptTemplateRegistry

# Orchestration
from app.services.ai.code_generation_service import CodeGenerationService
from app.services.ai.project_planner import ProjectPlanner

__all__ = [
    # Provider clients
    "BaseProviderClient",
    "PlaceholderProviderClient",
    "OpenAIClient",
    "AnthropicClient",
    "GoogleClient",
    "CerebrasClient",
    "GenerationClient",

    # Rate limiting
    "ProviderRateLimiter",
    "RateLimitPolicy",

    # Templates
    "PromptTemplateRegistry",

    # Orchestration
    "CodeGenerationService",
    "ProjectPlanner",
]
