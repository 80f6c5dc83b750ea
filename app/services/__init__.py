"""
Services layer for the AppForge generation API.
Contains business logic and orchestration for code generation.
"""
