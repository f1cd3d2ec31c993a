"""
Grade harmonization.

Numeric transforms a grader can apply to the total scores of an exam
(bonus, linear scaling, curving to a target average, square-root curve,
floor, ceiling, rescaling to another maximum), with the statistics and
histogram used to preview them, and the per-attempt scaling applied when
a new total is stored.

All previewed scores are rounded to the nearest quarter point.
"""

from dataclasses import dataclass, field
from typing import Optional
import math


METHODS = ('bonus', 'linear', 'curve_average', 'sqrt', 'floor', 'ceiling')

# Parameter each method needs
METHOD_PARAMS = {
    'bonus': 'bonus',
    'linear': 'scaleFactor',
    'curve_average': 'targetAverage',
    'sqrt': None,
    'floor': 'minScore',
    'ceiling': 'maxScore',
}

MAX_BINS = 10


class HarmonizationError(ValueError):
    """Unknown method, missing parameter, or an impossible rescale."""


@dataclass
class GradeData:
    """Current total score of one attempt."""
    attempt_id: str
    current_score: float


@dataclass
class ScoreStats:
    avg: float = 0.0
    min: float = 0.0
    max: float = 0.0
    std_dev: float = 0.0
    count: int = 0


@dataclass
class HarmonizationPreview:
    """
    Result of applying a method without storing it.

    Attributes:
        method: Method name (one of METHODS)
        params: Parameters used
        scores: attempt_id -> new score
        old: Statistics of the current scores
        new: Statistics of the previewed scores
    """
    method: str
    params: dict
    scores: dict[str, float] = field(default_factory=dict)
    old: ScoreStats = field(default_factory=ScoreStats)
    new: ScoreStats = field(default_factory=ScoreStats)

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "params": dict(self.params),
            "previewScores": [
                {"attemptId": attempt_id, "newScore": score}
                for attempt_id, score in self.scores.items()
            ],
            "stats": {
                "oldAvg": self.old.avg,
                "newAvg": self.new.avg,
                "oldMin": self.old.min,
                "newMin": self.new.min,
                "oldMax": self.old.max,
                "newMax": self.new.max,
                "oldStdDev": self.old.std_dev,
                "newStdDev": self.new.std_dev,
            },
        }


@dataclass
class HistogramBin:
    min: float
    max: float
    count: int = 0


def round_to_quarter(value: float) -> float:
    """Round to the nearest 0.25 (halves round up)."""
    return math.floor(value * 4 + 0.5) / 4


def calculate_std_dev(scores: list[float], avg: Optional[float] = None) -> float:
    """Population standard deviation."""
    if not scores:
        return 0.0
    if avg is None:
        avg = sum(scores) / len(scores)
    return math.sqrt(sum((s - avg) ** 2 for s in scores) / len(scores))


def score_stats(scores: list[float]) -> ScoreStats:
    if not scores:
        return ScoreStats()
    avg = sum(scores) / len(scores)
    return ScoreStats(
        avg=avg,
        min=min(scores),
        max=max(scores),
        std_dev=calculate_std_dev(scores, avg),
        count=len(scores),
    )


def _param(params: dict, method: str) -> float:
    name = METHOD_PARAMS[method]
    if name not in params:
        raise HarmonizationError(f"Method '{method}' requires parameter '{name}'")
    try:
        return float(params[name])
    except (TypeError, ValueError) as e:
        raise HarmonizationError(f"Parameter '{name}' must be a number, got {params[name]!r}") from e


def harmonize_score(score: float, method: str, params: dict, max_points: float,
                    current_avg: float = 0.0) -> float:
    """
    New score for one grade, before rounding.

    current_avg is the class average, used by 'curve_average'.
    """
    if method not in METHODS:
        raise HarmonizationError(f"Unknown harmonization method: {method}")

    if method == 'bonus':
        return min(max(0.0, score + _param(params, method)), max_points)
    if method == 'linear':
        return min(score * _param(params, method), max_points)
    if method == 'curve_average':
        adjustment = _param(params, method) - current_avg
        return max(0.0, min(score + adjustment, max_points))
    if method == 'sqrt':
        if max_points <= 0:
            raise HarmonizationError("Square-root curve needs a positive max_points")
        return math.sqrt(max(score, 0.0) / max_points) * max_points
    if method == 'floor':
        return max(score, _param(params, method))
    return min(score, _param(params, method))


def preview_harmonization(
    grades: list[GradeData],
    method: str,
    params: dict,
    max_points: float,
) -> Optional[HarmonizationPreview]:
    """
    Apply method to every grade and compare statistics.

    Returns None when there are no grades.
    """
    if not grades:
        return None

    current = [g.current_score for g in grades]
    old = score_stats(current)

    scores = {}
    for g in grades:
        new_score = harmonize_score(g.current_score, method, params, max_points, old.avg)
        scores[g.attempt_id] = round_to_quarter(new_score)

    return HarmonizationPreview(
        method=method,
        params=dict(params),
        scores=scores,
        old=old,
        new=score_stats(list(scores.values())),
    )


def rescale_scores(grades: list[GradeData], max_points: float, target_scale: float) -> dict[str, float]:
    """
    Express every score on a new maximum, e.g. /20 -> /100.

    Returns an empty mapping when nothing changes (same scale, no grades).
    """
    if max_points <= 0:
        raise HarmonizationError(f"max_points must be positive, got {max_points}")
    if target_scale == max_points or not grades:
        return {}
    return {
        g.attempt_id: round_to_quarter(g.current_score / max_points * target_scale)
        for g in grades
    }


def _bin_count(max_points: float) -> int:
    return max(1, min(MAX_BINS, math.ceil(max_points)))


def bin_index(score: float, max_points: float) -> int:
    """Histogram bin of score; scores at or above max_points fall in the last bin."""
    n = _bin_count(max_points)
    width = max_points / n
    return max(0, min(math.floor(score / width), n - 1))


def score_histogram(scores: list[float], max_points: float) -> list[HistogramBin]:
    """Counts over min(10, ceil(max_points)) equal-width bins on [0, max_points]."""
    if max_points <= 0:
        return []
    n = _bin_count(max_points)
    width = max_points / n
    bins = [HistogramBin(i * width, (i + 1) * width) for i in range(n)]
    for score in scores:
        bins[bin_index(score, max_points)].count += 1
    return bins


def bin_movements(grades: list[GradeData], preview: HarmonizationPreview,
                  max_points: float) -> dict[tuple[int, int], int]:
    """Number of grades moving between histogram bins: (from, to) -> count."""
    movements: dict[tuple[int, int], int] = {}
    if max_points <= 0:
        return movements
    for g in grades:
        new_score = preview.scores.get(g.attempt_id, g.current_score)
        key = (bin_index(g.current_score, max_points), bin_index(new_score, max_points))
        if key[0] != key[1]:
            movements[key] = movements.get(key, 0) + 1
    return movements


def threshold_counts(scores: list[float], threshold: float) -> tuple[int, int]:
    """(at or above, below) threshold."""
    above = sum(1 for s in scores if s >= threshold)
    return above, len(scores) - above


def scale_attempt_grades(grade_scores: list[float], new_total: float) -> list[float]:
    """
    Spread a new total over an attempt's individual grades.

    Every grade is multiplied by new_total / current total and rounded to
    0.01. An attempt scored 0 can only stay at 0.
    """
    current_total = sum(grade_scores)
    if current_total == 0 and new_total > 0:
        raise HarmonizationError("Cannot scale an attempt with a total of 0")
    ratio = new_total / current_total if current_total > 0 else 1.0
    return [math.floor(score * ratio * 100 + 0.5) / 100 for score in grade_scores]
