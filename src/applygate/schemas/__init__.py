"""Pydantic schema definitions for questionnaires, sessions and applications."""

from __future__ import annotations

from .questionnaire import (
    EqRule,
    GateOperator,
    GateRule,
    GteRule,
    IncludesAllRule,
    IncludesAnyRule,
    InRule,
    Question,
    Questionnaire,
    QuestionType,
    decode_gate_rule,
    encode_gate_rule_value,
    parse_gate_rule,
    parse_gate_rules,
)
from .session import (
    Application,
    ApplicationSession,
    ApplicationSubmission,
    CandidateGateAnswer,
    CandidateProfile,
    Job,
    JobStatus,
    SessionStatus,
)

__all__ = [
    "Application",
    "ApplicationSession",
    "ApplicationSubmission",
    "CandidateGateAnswer",
    "CandidateProfile",
    "EqRule",
    "GateOperator",
    "GateRule",
    "GteRule",
    "IncludesAllRule",
    "IncludesAnyRule",
    "InRule",
    "Job",
    "JobStatus",
    "Question",
    "Questionnaire",
    "QuestionType",
    "SessionStatus",
    "decode_gate_rule",
    "encode_gate_rule_value",
    "parse_gate_rule",
    "parse_gate_rules",
]
