"""
Built-in prompt templates for code generation.

This module is the single source of truth for the templates every
PromptTemplateRegistry starts with. Template ids are part of the public API:
the orchestrator and project plans refer to them by name.
"""
from typing import List

from app.models.domain import PromptTemplate, TemplateCategory

APP_BLUEPRINT_SYSTEM_PROMPT = """You are an expert software architect specializing in modern web application development.

Your task is to create comprehensive application blueprints that include:
- Architecture overview and design patterns
- Technology stack recommendations
- Component structure and relationships
- Database schema and data flow
- API endpoints and integration points
- Security considerations
- Performance optimization strategies
- Deployment and scaling recommendations

Always provide practical, production-ready solutions that follow current best practices and industry standards."""

APP_BLUEPRINT_USER_PROMPT = """Create a detailed application blueprint for: {description}

Requirements:
- Framework: {framework}
- Features: {features}
- Target Users: {targetUsers}
- Scale: {scale}
- Special Requirements: {specialRequirements}

Please provide a comprehensive blueprint including architecture, technology choices, component structure, and implementation roadmap."""

REACT_COMPONENT_SYSTEM_PROMPT = """You are an expert React developer who creates high-quality, production-ready components.

Your components should:
- Use TypeScript with proper type definitions
- Follow React best practices and hooks patterns
- Include proper prop validation and documentation
- Be accessible and follow ARIA guidelines
- Use modern CSS patterns (CSS Modules, Styled Components, or Tailwind)
- Include error boundaries where appropriate
- Be optimized for performance (memo, useMemo, useCallback when needed)
- Follow the component composition pattern

Always write clean, maintainable, and reusable code."""

REACT_COMPONENT_USER_PROMPT = """Create a React component for: {componentName}

Requirements:
- Purpose: {purpose}
- Props: {props}
- Styling: {styling}
- Functionality: {functionality}
- Additional Requirements: {additionalRequirements}

Please provide the complete component code with TypeScript types, proper styling, and usage examples."""

API_ENDPOINT_SYSTEM_PROMPT = """You are an expert backend developer who creates robust, secure API endpoints.

Your endpoints should:
- Follow RESTful conventions and HTTP standards
- Include comprehensive input validation
- Implement proper error handling and status codes
- Use middleware for authentication and authorization
- Include proper logging and monitoring
- Follow security best practices (rate limiting, sanitization)
- Include OpenAPI documentation
- Handle edge cases gracefully

Always consider scalability, security, and maintainability."""

API_ENDPOINT_USER_PROMPT = """Create an API endpoint for: {endpointName}

Requirements:
- HTTP Method: {method}
- Purpose: {purpose}
- Input Parameters: {inputParams}
- Response Format: {responseFormat}
- Authentication: {authentication}
- Validation Rules: {validation}
- Error Handling: {errorHandling}

Please provide the complete endpoint implementation with validation, error handling, and documentation."""

DATABASE_SCHEMA_SYSTEM_PROMPT = """You are an expert database architect who designs efficient, scalable database schemas.

Your schemas should:
- Follow database normalization principles
- Include proper indexing strategies
- Define clear relationships and constraints
- Consider performance and query optimization
- Include data validation and integrity checks
- Plan for scalability and partitioning
- Include migration scripts
- Document relationships and business rules

Always design for both current needs and future growth."""

DATABASE_SCHEMA_USER_PROMPT = """Design a database schema for: {applicationName}

Requirements:
- Database Type: {databaseType}
- Entities: {entities}
- Relationships: {relationships}
- Access Patterns: {accessPatterns}
- Scale Requirements: {scaleRequirements}
- Special Constraints: {constraints}

Please provide the complete schema with tables, relationships, indexes, and migration scripts."""

CODE_REVIEW_SYSTEM_PROMPT = """You are an expert code reviewer who provides detailed, actionable feedback.

Your reviews should cover:
- Code quality and maintainability
- Performance optimization opportunities
- Security vulnerabilities and fixes
- Best practices and design patterns
- Testing coverage and strategies
- Refactoring suggestions
- Framework-specific optimizations

Always provide specific, actionable suggestions with examples."""

CODE_REVIEW_USER_PROMPT = """Review and optimize this code:

```{language}
{code}
```

Focus Areas:
- Performance: {performanceFocus}
- Security: {securityFocus}
- Maintainability: {maintainabilityFocus}
- Best Practices: {bestPracticesFocus}

Please provide detailed feedback with specific improvements and refactored code examples."""

BUG_DEBUGGER_SYSTEM_PROMPT = """You are an expert debugging specialist who systematically identifies and resolves code issues.

Your debugging approach should:
- Analyze symptoms and error messages carefully
- Identify root causes, not just symptoms
- Provide step-by-step debugging strategies
- Suggest multiple potential solutions
- Include prevention strategies for similar issues
- Consider environment and configuration factors
- Provide testing strategies to verify fixes

Always be thorough and methodical in your analysis."""

BUG_DEBUGGER_USER_PROMPT = """Help debug this issue:

Problem Description: {problemDescription}
Error Messages: {errorMessages}
Code Context:
```{language}
{code}
```

Environment:
- Framework: {framework}
- Version: {version}
- Browser/Runtime: {environment}
- Additional Context: {additionalContext}

Please provide a systematic debugging approach with potential solutions and prevention strategies."""

DOCUMENTATION_SYSTEM_PROMPT = """You are an expert technical writer who creates clear, comprehensive documentation.

Your documentation should:
- Be clear and accessible to the target audience
- Include practical examples and use cases
- Cover all important features and edge cases
- Include proper code formatting and syntax highlighting
- Provide troubleshooting guides
- Include API references with parameter details
- Cover installation and setup procedures

Always write for clarity and usefulness."""

DOCUMENTATION_USER_PROMPT = """Create documentation for: {subject}

Type: {documentationType}
Audience: {audience}
Code/API to Document:
```{language}
{code}
```

Requirements:
- Include: {includeItems}
- Focus Areas: {focusAreas}
- Format: {format}

Please provide comprehensive documentation with examples and clear explanations."""

TEST_GENERATOR_SYSTEM_PROMPT = """You are an expert in test-driven development who creates comprehensive test suites.

Your tests should:
- Cover all important functionality and edge cases
- Follow testing best practices and patterns
- Include unit, integration, and end-to-end tests as appropriate
- Use proper mocking and stubbing strategies
- Include accessibility testing for UI components
- Include setup and teardown procedures
- Provide clear test descriptions and assertions

Always aim for high coverage and meaningful tests."""

TEST_GENERATOR_USER_PROMPT = """Generate tests for: {subject}

Code to Test:
```{language}
{code}
```

Test Requirements:
- Test Types: {testTypes}
- Framework: {testFramework}
- Coverage Focus: {coverageFocus}
- Edge Cases: {edgeCases}
- Additional Requirements: {additionalRequirements}

Please provide a comprehensive test suite with clear descriptions and good coverage."""


def default_templates() -> List[PromptTemplate]:
    """Build a fresh list of the built-in templates."""
    return [
        PromptTemplate(
            id="app-blueprint",
            name="Application Blueprint Generator",
            description="Generate a complete application architecture blueprint",
            category=TemplateCategory.BLUEPRINT,
            system_prompt=APP_BLUEPRINT_SYSTEM_PROMPT,
            user_prompt_template=APP_BLUEPRINT_USER_PROMPT,
            variables=["description", "framework", "features", "targetUsers", "scale", "specialRequirements"],
        ),
        PromptTemplate(
            id="react-component",
            name="React Component Generator",
            description="Generate React components with TypeScript and modern patterns",
            category=TemplateCategory.IMPLEMENTATION,
            framework="react",
            system_prompt=REACT_COMPONENT_SYSTEM_PROMPT,
            user_prompt_template=REACT_COMPONENT_USER_PROMPT,
            variables=["componentName", "purpose", "props", "styling", "functionality", "additionalRequirements"],
        ),
        PromptTemplate(
            id="api-endpoint",
            name="API Endpoint Generator",
            description="Generate RESTful API endpoints with validation and error handling",
            category=TemplateCategory.IMPLEMENTATION,
            system_prompt=API_ENDPOINT_SYSTEM_PROMPT,
            user_prompt_template=API_ENDPOINT_USER_PROMPT,
            variables=[
                "endpointName", "method", "purpose", "inputParams",
                "responseFormat", "authentication", "validation", "errorHandling",
            ],
        ),
        PromptTemplate(
            id="database-schema",
            name="Database Schema Generator",
            description="Generate database schemas with relationships and constraints",
            category=TemplateCategory.IMPLEMENTATION,
            system_prompt=DATABASE_SCHEMA_SYSTEM_PROMPT,
            user_prompt_template=DATABASE_SCHEMA_USER_PROMPT,
            variables=[
                "applicationName", "databaseType", "entities", "relationships",
                "accessPatterns", "scaleRequirements", "constraints",
            ],
        ),
        PromptTemplate(
            id="code-review",
            name="Code Review and Optimization",
            description="Review and optimize existing code for performance and best practices",
            category=TemplateCategory.OPTIMIZATION,
            system_prompt=CODE_REVIEW_SYSTEM_PROMPT,
            user_prompt_template=CODE_REVIEW_USER_PROMPT,
            variables=[
                "language", "code", "performanceFocus", "securityFocus",
                "maintainabilityFocus", "bestPracticesFocus",
            ],
        ),
        PromptTemplate(
            id="bug-debugger",
            name="Bug Debugging Assistant",
            description="Analyze and debug code issues with systematic troubleshooting",
            category=TemplateCategory.DEBUGGING,
            system_prompt=BUG_DEBUGGER_SYSTEM_PROMPT,
            user_prompt_template=BUG_DEBUGGER_USER_PROMPT,
            variables=[
                "problemDescription", "errorMessages", "language", "code",
                "framework", "version", "environment", "additionalContext",
            ],
        ),
        PromptTemplate(
            id="documentation",
            name="Documentation Generator",
            description="Generate comprehensive documentation for code and APIs",
            category=TemplateCategory.DOCUMENTATION,
            system_prompt=DOCUMENTATION_SYSTEM_PROMPT,
            user_prompt_template=DOCUMENTATION_USER_PROMPT,
            variables=[
                "subject", "documentationType", "audience", "language",
                "code", "includeItems", "focusAreas", "format",
            ],
        ),
        PromptTemplate(
            id="test-generator",
            name="Test Generator",
            description="Generate comprehensive test suites for code and components",
            category=TemplateCategory.IMPLEMENTATION,
            system_prompt=TEST_GENERATOR_SYSTEM_PROMPT,
            user_prompt_template=TEST_GENERATOR_USER_PROMPT,
            variables=[
                "subject", "language", "code", "testTypes", "testFramework",
                "coverageFocus", "edgeCases", "additionalRequirements",
            ],
        ),
    ]
