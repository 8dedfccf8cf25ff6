# tests/test_utils.py
import json

import pytest

from sims4_translator.ai.exceptions import TranslationFormatError
from sims4_translator.translation.utils import (
    batch_bounds,
    build_source_json,
    count_batches,
    extract_translation_map,
    find_json_object,
    safe_parse_json_object,
)
from tests.conftest import make_records


# ------------------------------------------------------------------
# Batching
# ------------------------------------------------------------------

@pytest.mark.parametrize("total,size,expected_sizes", [
    (0, 5, []),
    (5, 5, [5]),
    (11, 5, [5, 5, 1]),
    (3, 50, [3]),
    (4, 1, [1, 1, 1, 1]),
])
def test_partition_sizes(total, size, expected_sizes):
    batches = [
        list(range(total))[slice(*batch_bounds(i, total, size))]
        for i in range(count_batches(total, size))
    ]
    assert [len(b) for b in batches] == expected_sizes
    assert count_batches(total, size) == len(expected_sizes)
    assert [item for batch in batches for item in batch] == list(range(total))


def test_count_batches_rejects_non_positive_size():
    with pytest.raises(ValueError):
        count_batches(10, 0)


def test_source_json_keeps_order_and_unicode():
    records = make_records(("B", "Zoë"), ("A", "Hi"))
    text = build_source_json(records)
    assert "Zoë" in text
    assert list(json.loads(text)) == ["B", "A"]


# ------------------------------------------------------------------
# JSON extraction
# ------------------------------------------------------------------

class TestExtraction:

    def test_plain_object(self):
        assert extract_translation_map('{"A": "a"}') == {"A": "a"}

    def test_code_fence(self):
        text = 'Here you go:\n```json\n{"A": "a", "B": "b"}\n```\nEnjoy'
        assert extract_translation_map(text) == {"A": "a", "B": "b"}

    def test_object_inside_prose(self):
        text = 'Sure! {"A": "x {0.SimFirstName} y"} hope that helps'
        assert extract_translation_map(text) == {"A": "x {0.SimFirstName} y"}

    def test_skips_braces_that_do_not_parse(self):
        text = 'Tokens like {0.SimFirstName} stay. {"A": "a"}'
        assert safe_parse_json_object(text) == {"A": "a"}

    def test_braces_inside_strings_do_not_end_the_object(self):
        assert find_json_object('x {"A": "}"} y') == {"A": "}"}

    def test_unclosed_brace_in_prose(self):
        text = 'Sure! Placeholders like {0.SimFirstName are kept. Result:\n{"A": "x"}'
        assert extract_translation_map(text) == {"A": "x"}

    def test_quoted_brace_before_the_object(self):
        assert extract_translation_map('The "{" character is kept. {"A": "x"}') == {"A": "x"}

    def test_no_object_raises_format_error(self):
        with pytest.raises(TranslationFormatError) as exc_info:
            extract_translation_map("I cannot translate this.")
        assert exc_info.value.code == "format_error"

    def test_top_level_array_is_rejected(self):
        with pytest.raises(TranslationFormatError):
            extract_translation_map('["a", "b"]')

    def test_non_string_values_raise_format_error(self):
        with pytest.raises(TranslationFormatError) as exc_info:
            extract_translation_map('{"A": 1, "B": "b"}')
        assert exc_info.value.details["invalid_keys"] == ["A"]
