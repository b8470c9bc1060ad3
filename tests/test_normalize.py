from __future__ import annotations

import itertools
import json
import logging

import pytest

from conftest import WEEDAWAY_JSON
from labelscan.core.normalize import derive_status, find_json_object, iter_json_objects, parse_label_data
from labelscan.schemas.analyze import AnalyzeStatus, LabelData

ALL_NULL = {
    "epa_registration_number": None,
    "product_name": None,
    "manufacturer": None,
    "signal_word": None,
    "active_ingredients": None,
    "precautionary_statements": None,
    "first_aid": None,
    "storage_and_disposal": None,
}


def test_find_json_object_strips_surrounding_prose() -> None:
    body = json.dumps(WEEDAWAY_JSON)
    text = f"Sure! Here is the label data I found:\n{body}\nLet me know if you need anything else."
    assert find_json_object(text) == body


def test_find_json_object_ignores_braces_inside_strings() -> None:
    body = '{"precautionary_statements": ["Avoid {contact} with eyes", "Wear gloves }"], "product_name": "X"}'
    assert find_json_object("prefix " + body + " suffix") == body


def test_find_json_object_returns_first_of_several_blocks() -> None:
    text = 'first {"product_name": "A"} then {"product_name": "B"}'
    assert find_json_object(text) == '{"product_name": "A"}'


def test_find_json_object_skips_unbalanced_opening_brace() -> None:
    text = 'note: { unclosed ... {"product_name": "A"}'
    # The outer '{' never balances, so the scan restarts at the next one.
    assert find_json_object(text) == '{"product_name": "A"}'


@pytest.mark.parametrize("text", ["", "no json here", "only a closing }", "{ never closed"])
def test_find_json_object_none(text: str) -> None:
    assert find_json_object(text) is None


def test_parse_label_data_round_trip_inside_prose() -> None:
    text = "```json\n" + json.dumps(WEEDAWAY_JSON, indent=2) + "\n```\nSources: epa.gov"
    label = parse_label_data(text)
    assert label.model_dump() == WEEDAWAY_JSON


def test_parse_label_data_ignores_unknown_keys_and_keeps_order() -> None:
    text = json.dumps(
        {
            "product_name": "Roundup",
            "confidence": 0.9,
            "precautionary_statements": ["b", "a", "c"],
            "active_ingredients": [{"name": "Z", "concentration": 2}, {"name": "A", "concentration": "1%"}],
        }
    )
    label = parse_label_data(text)
    assert label.precautionary_statements == ["b", "a", "c"]
    assert [i.name for i in label.active_ingredients] == ["Z", "A"]
    assert label.active_ingredients[0].concentration == "2"


@pytest.mark.parametrize(
    "text",
    [
        "I could not identify this product.",
        '{"product_name": "WeedAway",}',
        'Per label {see panel 2}: {"product_name": "WeedAway",}',
    ],
)
def test_parse_label_data_falls_back_to_empty(text: str, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="labelscan.core.normalize"):
        label = parse_label_data(text)

    assert label.model_dump() == ALL_NULL
    assert derive_status(label) is AnalyzeStatus.unidentified
    assert any("Failed to parse Gemini response" in r.getMessage() for r in caplog.records)


def test_derive_status_for_every_combination() -> None:
    others = [
        {},
        {"manufacturer": "Acme"},
        {"signal_word": "Danger", "precautionary_statements": ["x"]},
        {"first_aid": {"eyes": "rinse"}, "active_ingredients": [{"name": "a", "concentration": "1%"}]},
    ]
    for reg, name, extra in itertools.product([None, "12345-67"], [None, "WeedAway"], others):
        label = LabelData(epa_registration_number=reg, product_name=name, **extra)
        expected = AnalyzeStatus.identified if (reg or name) else AnalyzeStatus.unidentified
        assert derive_status(label) is expected


def test_derive_status_empty_string_is_absent_whitespace_is_not() -> None:
    assert derive_status(LabelData(product_name="", epa_registration_number="")) is AnalyzeStatus.unidentified
    assert derive_status(LabelData(product_name="  ")) is AnalyzeStatus.identified


def test_parse_label_data_skips_non_json_brace_group() -> None:
    body = json.dumps(WEEDAWAY_JSON)
    label = parse_label_data("Per label {see panel 2}:\n" + body)

    assert label.model_dump() == WEEDAWAY_JSON
    assert derive_status(label) is AnalyzeStatus.identified


def test_iter_json_objects_yields_candidates_in_order() -> None:
    text = 'a {not json} b {"product_name": "X"}'
    assert list(iter_json_objects(text)) == ["{not json}", '{"product_name": "X"}']


def test_parse_label_data_nulls_only_mistyped_fields(caplog: pytest.LogCaptureFixture) -> None:
    text = json.dumps(
        {
            "product_name": "WeedAway",
            "epa_registration_number": "12345-67",
            "active_ingredients": ["Glyphosate 41%"],
            "first_aid": "Call a doctor",
            "signal_word": "Warning",
        }
    )
    with caplog.at_level(logging.WARNING, logger="labelscan.core.normalize"):
        label = parse_label_data(text)

    assert label.product_name == "WeedAway"
    assert label.epa_registration_number == "12345-67"
    assert label.signal_word == "Warning"
    assert label.active_ingredients is None
    assert label.first_aid is None
    assert derive_status(label) is AnalyzeStatus.identified
    assert any("active_ingredients, first_aid" in r.getMessage() for r in caplog.records)


def test_parse_label_data_all_fields_mistyped_is_empty_not_error() -> None:
    label = parse_label_data('{"product_name": ["not", "a", "string"], "active_ingredients": "Glyphosate 41%"}')
    assert label.model_dump() == ALL_NULL
    assert derive_status(label) is AnalyzeStatus.unidentified
