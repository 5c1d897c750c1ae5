"""
Per-segment averaging of transition samples and the blended trend line.

Every segment always reports every transition key. A key with no samples
reports 0.0, and a segment where nothing moved gets a null trend value so a
chart can show a gap instead of a misleading zero.
"""

from typing import Iterable, Optional, Sequence

from onboarding_api.models.dashboard import (
    PeriodMetrics,
    TimeSegment,
    TransitionSample,
    TrendPoint,
)

from .transitions import TRANSITION_KEYS, transition_key

_KNOWN_KEYS = frozenset(TRANSITION_KEYS)


def _locate(segments: Sequence[TimeSegment], sample: TransitionSample) -> Optional[int]:
    for index, segment in enumerate(segments):
        if segment.contains(sample.completed_at):
            return index
    return None


def aggregate_by_segment(
    samples: Iterable[TransitionSample],
    segments: Sequence[TimeSegment],
) -> list[PeriodMetrics]:
    """
    Average elapsed days per transition key within each segment.

    Samples are placed by their completion time; those falling outside every
    segment are ignored. Averages are rounded to one decimal.
    """
    sums = [dict.fromkeys(TRANSITION_KEYS, 0.0) for _ in segments]
    counts = [dict.fromkeys(TRANSITION_KEYS, 0) for _ in segments]

    for sample in samples:
        key = transition_key(sample.from_status, sample.to_status)
        if key not in _KNOWN_KEYS:
            continue
        index = _locate(segments, sample)
        if index is None:
            continue
        sums[index][key] += sample.elapsed_days
        counts[index][key] += 1

    metrics = []
    for index, segment in enumerate(segments):
        averages = {
            key: round(sums[index][key] / counts[index][key], 1) if counts[index][key] else 0.0
            for key in TRANSITION_KEYS
        }
        metrics.append(PeriodMetrics(label=segment.label, averages=averages))
    return metrics


def blend_value(averages: Iterable[float]) -> Optional[float]:
    """Mean of the strictly positive averages, or None when there are none."""
    positive = [value for value in averages if value > 0]
    if not positive:
        return None
    return round(sum(positive) / len(positive), 1)


def blend_trend(period_metrics: Iterable[PeriodMetrics]) -> list[TrendPoint]:
    return [
        TrendPoint(label=metrics.label, blended_average=blend_value(metrics.averages.values()))
        for metrics in period_metrics
    ]
