"""
Helpers for pulling structured output out of free-text model responses.

Models are asked to answer with a JSON object describing generated files, but
they routinely wrap it in prose, markdown fences or reasoning tags. These
helpers peel that away before parsing.
"""
import re
import json
import logging
from typing import Any, Dict, List, Optional

from app.models.domain import GeneratedFile

logger = logging.getLogger(__name__)

_THINK_PATTERN = re.compile(r'<think[^>]*>.*?</think>', re.DOTALL | re.IGNORECASE)
_FENCE_PATTERN = re.compile(r'```(?:json)?\s*(.*?)\s*```', re.DOTALL)
# Greedy: first "{" to last "}" so braces inside file contents don't end the match early
_OBJECT_PATTERN = re.compile(r'\{[\s\S]*\}')

_EXTENSION_LANGUAGES = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "py": "python",
    "css": "css",
    "scss": "scss",
    "html": "html",
    "json": "json",
    "md": "markdown",
    "sql": "sql",
    "yml": "yaml",
    "yaml": "yaml",
}


def strip_think_tags(content: str) -> str:
    """
    Remove <think>...</think> blocks from a model response.

    Args:
        content: Raw content string from the model

    Returns:
        Content with reasoning blocks removed and stripped
    """
    matches = _THINK_PATTERN.findall(content)
    if matches:
        logger.info(f"strip_think_tags: stripping {len(matches)} think block(s)")
        content = _THINK_PATTERN.sub('', content)
    return content.strip()


def extract_json_from_markdown(content: str) -> str:
    """
    Extract the body of a fenced code block if the content starts with one.

    Args:
        content: Content string that may contain markdown code blocks

    Returns:
        The fenced body, or the stripped content unchanged
    """
    json_str = content.strip()
    if json_str.startswith('```'):
        match = _FENCE_PATTERN.search(json_str)
        if match:
            json_str = match.group(1).strip()
        else:
            logger.warning("Content starts with ``` but no closing ``` found")
    return json_str


def find_json_object(text: str) -> Optional[str]:
    """Return the widest {...} span in the text, or None."""
    match = _OBJECT_PATTERN.search(text)
    return match.group(0) if match else None


def safe_json_loads(json_str: str) -> Optional[Any]:
    """
    Parse a JSON string, returning None instead of raising.
    """
    try:
        return json.loads(json_str)
    except json.JSONDecodeError as e:
        logger.error(f"JSON decode error: {str(e)}")
        logger.debug(f"JSON string that failed to parse (first 1000 chars): {json_str[:1000]}")
        return None


def extract_json_object(content: str) -> Dict[str, Any]:
    """
    Find and parse the JSON object embedded in a model response.

    Raises:
        ValueError: If no object is present or it doesn't parse
    """
    cleaned = extract_json_from_markdown(strip_think_tags(content))
    candidate = find_json_object(cleaned)
    if candidate is None:
        raise ValueError("No JSON object found in AI response")

    parsed = safe_json_loads(candidate)
    if not isinstance(parsed, dict):
        raise ValueError("Invalid JSON object in AI response")
    return parsed


def guess_language(path: str) -> str:
    extension = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    return _EXTENSION_LANGUAGES.get(extension, "text")


def extract_generated_files(content: str) -> List[GeneratedFile]:
    """
    Parse the `{"files": [...]}` payload a model returns for app generation.

    Entries without a language get one guessed from the file extension.

    Raises:
        ValueError: If the response holds no parseable object or no files list
    """
    parsed = extract_json_object(content)
    raw_files = parsed.get("files")
    if not isinstance(raw_files, list):
        raise ValueError("AI response JSON has no 'files' list")

    files = []
    for entry in raw_files:
        if not isinstance(entry, dict):
            logger.warning(f"Skipping non-object file entry: {str(entry)[:100]}")
            continue
        generated = GeneratedFile.from_dict(entry)
        if not entry.get("language"):
            generated.language = guess_language(generated.path)
        files.append(generated)

    logger.info(f"Extracted {len(files)} generated file(s) from AI response")
    return files
