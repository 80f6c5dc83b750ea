import pytest

from app.models.domain import FileType
from app.services.ai.response_parser import (
    extract_generated_files,
    extract_json_object,
    guess_language,
    strip_think_tags,
)

from tests.conftest import APP_RESPONSE


def test_strip_think_tags():
    assert strip_think_tags("<think>plan it</think>\n{\"a\": 1}") == '{"a": 1}'


def test_extract_json_from_fenced_block():
    assert extract_json_object('```json\n{"a": {"b": 2}}\n```') == {"a": {"b": 2}}


def test_extract_json_surrounded_by_prose():
    content = 'Sure! {"files": [{"content": "if (x) { y(); }"}]} Hope that helps.'
    assert extract_json_object(content)["files"][0]["content"] == "if (x) { y(); }"


@pytest.mark.parametrize("content", ["no json here", "{not: valid}", "[1, 2]"])
def test_extract_json_rejects_non_objects(content):
    with pytest.raises(ValueError):
        extract_json_object(content)


def test_extract_generated_files():
    files = extract_generated_files(APP_RESPONSE)

    assert [f.path for f in files] == ["src/App.tsx", "src/index.css"]
    assert files[0].type == FileType.COMPONENT
    assert files[0].language == "typescript"
    # Language guessed from the extension when the model leaves it out
    assert files[1].language == "css"
    assert files[1].type == FileType.STYLE


def test_loose_file_entries_tolerated():
    files = extract_generated_files(
        '{"files": ["junk", {"path": "README", "content": "hi", "type": "weird"}]}'
    )
    assert len(files) == 1
    assert files[0].name == "README"
    assert files[0].type == FileType.OTHER
    assert files[0].language == "text"


def test_missing_files_list():
    with pytest.raises(ValueError):
        extract_generated_files('{"result": "ok"}')


def test_guess_language():
    assert guess_language("app/main.py") == "python"
    assert guess_language("Dockerfile") == "text"
