"""Eligibility gate evaluation and application session engine."""

from __future__ import annotations

__version__ = "0.1.0"

from .apply import Applied, GateAnswersRequired, GateRejected, OneClickApplyOrchestrator
from .container import create_container
from .core import AnswerMergeResolver, GateEvaluation, GateEvaluator, evaluate_gates
from .errors import (
    ApplyGateError,
    DuplicateApplication,
    JobExpired,
    NotFound,
    StateError,
    ValidationError,
)
from .service import ApplyService
from .sessions import SessionEvaluation, SessionStateMachine
from .sweeper import AbandonmentSweeper, SweepReport

__all__ = [
    "__version__",
    "AbandonmentSweeper",
    "AnswerMergeResolver",
    "Applied",
    "ApplyGateError",
    "ApplyService",
    "DuplicateApplication",
    "GateAnswersRequired",
    "GateEvaluation",
    "GateEvaluator",
    "GateRejected",
    "JobExpired",
    "NotFound",
    "OneClickApplyOrchestrator",
    "SessionEvaluation",
    "SessionStateMachine",
    "StateError",
    "SweepReport",
    "ValidationError",
    "create_container",
    "evaluate_gates",
]
