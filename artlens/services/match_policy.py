"""Turns a ranked candidate list into a confident, ambiguous or empty outcome."""

from __future__ import annotations

from typing import Sequence

from artlens.models import IdentificationResult, MatchCandidate, MatchOutcome


def classify(ranked: Sequence[MatchCandidate], threshold: float) -> IdentificationResult:
    """Classify ``ranked`` (highest score first) against ``threshold``.

    A top score equal to the threshold counts as confident. The best
    candidate is reported even when it falls short of the threshold.
    """
    if not ranked:
        return IdentificationResult(outcome=MatchOutcome.NO_CANDIDATES)
    best = ranked[0]
    outcome = MatchOutcome.CONFIDENT if best.score >= threshold else MatchOutcome.AMBIGUOUS
    return IdentificationResult(outcome=outcome, best=best, alternatives=list(ranked[1:]))
