"""Reconcile saved candidate answers with freshly supplied ones."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from .operators import is_blank


@dataclass(slots=True)
class MergeResolution:
    merged: dict[str, Any]
    missing: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing


class AnswerMergeResolver:
    """Merge saved and provided answers, provided winning on conflicts."""

    def resolve(
        self,
        required_keys: Iterable[str],
        saved: Mapping[str, Any] | None,
        provided: Mapping[str, Any] | None = None,
    ) -> MergeResolution:
        merged: dict[str, Any] = {**(saved or {}), **(provided or {})}
        missing = [
            key for key in self._ordered_keys(required_keys) if is_blank(merged.get(key))
        ]
        return MergeResolution(merged=merged, missing=missing)

    @staticmethod
    def prefill(keys: Iterable[str], saved: Mapping[str, Any] | None) -> dict[str, Any]:
        """Saved answers for keys being re-asked, so a form can be prefilled."""
        saved = saved or {}
        return {key: saved[key] for key in keys if key in saved}

    @staticmethod
    def _ordered_keys(keys: Iterable[str]) -> list[str]:
        if isinstance(keys, (set, frozenset)):
            return sorted(keys)
        return list(dict.fromkeys(keys))
