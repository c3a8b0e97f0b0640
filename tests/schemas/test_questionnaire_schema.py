from __future__ import annotations

import pytest
from pydantic import ValidationError

from applygate.schemas import (
    EqRule,
    GteRule,
    IncludesAnyRule,
    InRule,
    Question,
    Questionnaire,
    QuestionType,
    decode_gate_rule,
    encode_gate_rule_value,
    parse_gate_rule,
)


def test_rules_decode_into_operator_specific_models():
    assert isinstance(parse_gate_rule({"question_key": "a", "operator": "EQ", "value": True}), EqRule)
    assert isinstance(parse_gate_rule({"question_key": "a", "operator": "GTE", "value": 3}), GteRule)
    assert isinstance(
        parse_gate_rule({"question_key": "a", "operator": "INCLUDES_ANY", "value": ["x"]}),
        IncludesAnyRule,
    )


def test_decode_gate_rule_parses_stored_json_once():
    rule = decode_gate_rule("languages", "INCLUDES_ANY", '["German", "Dutch"]', order_index=2)

    assert isinstance(rule, IncludesAnyRule)
    assert rule.value == ["German", "Dutch"]
    assert rule.order_index == 2
    assert encode_gate_rule_value(rule) == '["German", "Dutch"]'


def test_scalar_value_for_set_operator_becomes_single_member_set():
    rule = decode_gate_rule("country", "IN", '"DE"')

    assert isinstance(rule, InRule)
    assert rule.value == ["DE"]


def test_gte_rejects_non_numeric_threshold():
    with pytest.raises(ValidationError):
        decode_gate_rule("years", "GTE", '"several"')


def test_unknown_operator_rejected():
    with pytest.raises(ValidationError):
        parse_gate_rule({"question_key": "a", "operator": "LTE", "value": 1})


def test_invalid_json_value_rejected():
    with pytest.raises(ValueError):
        decode_gate_rule("a", "EQ", "{not json")


def test_question_is_immutable_and_labels_fall_back_to_key():
    question = Question(key="years_endur", type=QuestionType.NUMBER)

    assert question.display_label == "years_endur"
    with pytest.raises(ValidationError):
        question.label = "changed"  # type: ignore[misc]


def test_questionnaire_orders_rules_and_gate_keys():
    questionnaire = Questionnaire(
        questions=[
            Question(key="b", type=QuestionType.BOOLEAN, order_index=1),
            Question(key="a", type=QuestionType.NUMBER, order_index=0),
        ],
        gate_rules=[
            {"question_key": "b", "operator": "EQ", "value": True, "order_index": 2},
            {"question_key": "a", "operator": "GTE", "value": 1, "order_index": 0},
            {"question_key": "b", "operator": "IN", "value": [True], "order_index": 1},
        ],
    )

    assert [question.key for question in questionnaire.ordered_questions()] == ["a", "b"]
    assert [rule.operator for rule in questionnaire.ordered_rules()] == ["GTE", "IN", "EQ"]
    assert questionnaire.gate_question_keys() == ["a", "b"]
