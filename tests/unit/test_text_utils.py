from services.text_utils import extract_json_object, strip_code_fences, truncate


def test_strip_code_fences_removes_json_fence():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'


def test_extract_json_object_ignores_surrounding_prose():
    text = 'Sure! Here it is:\n```json\n{"description": "x", "tags": []}\n```\nEnjoy.'
    assert extract_json_object(text) == '{"description": "x", "tags": []}'


def test_extract_json_object_spans_first_to_last_brace():
    text = 'prefix {"a": {"b": 1}} suffix'
    assert extract_json_object(text) == '{"a": {"b": 1}}'


def test_extract_json_object_empty_input():
    assert extract_json_object("") == "{}"


def test_extract_json_object_without_braces_returns_cleaned_text():
    assert extract_json_object("no json here") == "no json here"


def test_truncate():
    assert truncate("short") == "short"
    assert truncate("x" * 10, limit=4) == "xxxx..."
