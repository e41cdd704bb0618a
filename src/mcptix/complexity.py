"""Complexity (CIE) score calculation.

The score folds fifteen raw engineering-effort metrics into one number in
[0, 100]. Metrics are grouped into six weighted categories; each category is
the plain mean of its metrics divided by their normalization constants.

Every write path that persists complexity metadata goes through
:func:`calculate_complexity_score`, so the score is reproducible from the
stored metrics.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any, Optional


WEIGHTS = {
    "code_surface_area": 0.15,
    "interconnectedness": 0.2,
    "cognitive_load": 0.25,
    "change_volume": 0.15,
    "quality_surface_area": 0.15,
    "process_friction": 0.1,
}

NORMALIZATION = {
    "files_touched": 10,
    "modules_crossed": 5,
    "stack_layers_involved": 3,
    "dependencies": 10,
    "shared_state_touches": 5,
    "cascade_impact_zones": 5,
    "subjectivity_rating": 1,
    "loc_added": 500,
    "loc_modified": 300,
    "test_cases_written": 20,
    "edge_cases": 10,
    "mocking_complexity": 5,
    "coordination_touchpoints": 5,
    "review_rounds": 3,
    "blockers_encountered": 3,
}

# Category -> member metrics. Order matters for float summation.
CATEGORIES = {
    "code_surface_area": ("files_touched", "modules_crossed", "stack_layers_involved"),
    "interconnectedness": ("dependencies", "shared_state_touches", "cascade_impact_zones"),
    "cognitive_load": ("subjectivity_rating",),
    "change_volume": ("loc_added", "loc_modified"),
    "quality_surface_area": ("test_cases_written", "edge_cases", "mocking_complexity"),
    "process_friction": ("coordination_touchpoints", "review_rounds", "blockers_encountered"),
}

MAX_SCORE = 100


@dataclass
class ComplexityMetrics:
    """The fifteen raw metrics that feed the CIE score."""

    files_touched: int = 0
    modules_crossed: int = 0
    stack_layers_involved: int = 0
    dependencies: int = 0
    shared_state_touches: int = 0
    cascade_impact_zones: int = 0
    subjectivity_rating: float = 0
    loc_added: int = 0
    loc_modified: int = 0
    test_cases_written: int = 0
    edge_cases: int = 0
    mocking_complexity: int = 0
    coordination_touchpoints: int = 0
    review_rounds: int = 0
    blockers_encountered: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ComplexityMetrics":
        return cls(**metric_values(data))

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in METRIC_FIELDS}


METRIC_FIELDS = tuple(f.name for f in fields(ComplexityMetrics))


def metric_values(metrics: Any) -> dict:
    """Extract all fifteen metrics, defaulting missing or empty values to 0.

    Accepts a mapping, any object exposing the metric attributes, or None.
    """
    if metrics is None:
        return {name: 0 for name in METRIC_FIELDS}
    if isinstance(metrics, Mapping):
        return {name: metrics.get(name) or 0 for name in METRIC_FIELDS}
    return {name: getattr(metrics, name, 0) or 0 for name in METRIC_FIELDS}


def calculate_complexity_score(metrics: Any = None) -> float:
    """Calculate the CIE score for a (possibly partial) set of metrics.

    Args:
        metrics: ComplexityMetrics, a mapping of metric name to value, or None

    Returns:
        Score in [0, 100], rounded half-up to one decimal place
    """
    values = metric_values(metrics)

    weighted_score = 0.0
    for category, members in CATEGORIES.items():
        total = 0.0
        for name in members:
            total += values[name] / NORMALIZATION[name]
        weighted_score += (total / len(members)) * WEIGHTS[category]

    final_score = min(MAX_SCORE, weighted_score * 100)
    return math.floor(final_score * 10 + 0.5) / 10
