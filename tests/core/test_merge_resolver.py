from __future__ import annotations

from applygate.core import AnswerMergeResolver


def test_provided_answers_take_precedence():
    resolution = AnswerMergeResolver().resolve(["a", "b"], {"a": 1, "b": 2}, {"b": 3})

    assert resolution.merged == {"a": 1, "b": 3}
    assert resolution.missing == []
    assert resolution.complete is True


def test_missing_keys_detected_without_provided_answers():
    resolution = AnswerMergeResolver().resolve({"a", "b", "c"}, {"a": 1}, None)

    assert resolution.missing == ["b", "c"]
    assert resolution.merged == {"a": 1}


def test_blank_values_count_as_missing():
    resolution = AnswerMergeResolver().resolve(
        ["years", "country", "languages", "relocate"],
        {"years": None, "country": "", "languages": [], "relocate": False},
    )

    assert resolution.missing == ["years", "country"]


def test_provided_blank_overrides_saved_value():
    resolution = AnswerMergeResolver().resolve(["country"], {"country": "DE"}, {"country": ""})

    assert resolution.merged == {"country": ""}
    assert resolution.missing == ["country"]


def test_missing_follows_required_key_order_and_dedupes():
    resolution = AnswerMergeResolver().resolve(["z", "a", "z", "m"], {}, {})

    assert resolution.missing == ["z", "a", "m"]


def test_prefill_only_includes_previously_saved_keys():
    prefill = AnswerMergeResolver.prefill(["a", "b"], {"a": "", "c": 3})

    assert prefill == {"a": ""}
