import pytest

from quillflow.utils.parsing import extract_json, extract_json_object
from quillflow.utils.retry import compute_backoff


def test_extract_json_prefers_fenced_block():
    text = 'Sure!\n```json\n{"a": 1}\n```\nAnything else?'
    assert extract_json(text) == {"a": 1}


def test_extract_json_accepts_plain_fence_and_bare_json():
    assert extract_json("```\n[1, 2]\n```") == [1, 2]
    assert extract_json('  {"b": true} ') == {"b": True}


def test_extract_json_raises_value_error():
    with pytest.raises(ValueError):
        extract_json("no json here")
    with pytest.raises(ValueError):
        extract_json(None)


def test_extract_json_object_falls_back_for_non_objects():
    assert extract_json_object("[1, 2]", lambda text: {"raw": text}) == {"raw": "[1, 2]"}
    assert extract_json_object("oops", lambda text: {"raw": text}) == {"raw": "oops"}
    assert extract_json_object('{"x": 1}', lambda text: {}) == {"x": 1}


def test_compute_backoff_doubles_per_attempt():
    assert compute_backoff(1, initial=5) == 5
    assert compute_backoff(2, initial=5) == 10
    assert compute_backoff(3, initial=5) == 20
    assert compute_backoff(1, initial=0) == 0
    assert 5 <= compute_backoff(1, initial=5, jitter=1) <= 6
