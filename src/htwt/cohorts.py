"""
Cohort selection and cohort result combination.

Infant tables cover 0-36 months and child tables 24-240 months, so subjects
aged 24-36 months are scored against both. The two results are merged with
the sign-masked min/max rule: negatives combine by minimum, positives by
maximum, and the two parts are added.
"""

from typing import List

import numpy as np

from .config import AGE_LIMIT_MONTHS, COHORT_RANGES, Cohort


def cohorts_for(age_months: float) -> List[Cohort]:
    """
    Cohorts whose validity range contains an age.

    Args:
        age_months: Age in months

    Returns:
        Matching cohorts in table order (empty for missing/negative/too-old ages)
    """
    if age_months is None or not np.isfinite(age_months):
        return []
    return [
        cohort
        for cohort, (low, high) in COHORT_RANGES.items()
        if low <= age_months <= high
    ]


def cohort_mask(ages: np.ndarray, cohort: Cohort) -> np.ndarray:
    """Boolean mask of ages inside a cohort's validity range (NaN never matches)."""
    low, high = COHORT_RANGES[Cohort(cohort)]
    ages = np.asarray(ages, dtype=np.float64)
    with np.errstate(invalid="ignore"):
        return (ages >= low) & (ages <= high)


def clamp_ages(ages: np.ndarray, limit: float = AGE_LIMIT_MONTHS) -> np.ndarray:
    """Clamp ages above the oldest reference age; NaN stays NaN."""
    ages = np.asarray(ages, dtype=np.float64)
    return np.where(ages > limit, limit, ages)


def minmax(v1: np.ndarray, v2: np.ndarray) -> np.ndarray:
    """
    Pairwise sign-masked combination of two result vectors.

    Only meaningful when paired values are expected to share a sign: the
    negative parts combine by minimum, the positive parts by maximum, and
    the two are summed. Zero contributes nothing to either side.

    Examples:
        minmax(-1.0, -2.0) -> -2.0
        minmax(0.5, 1.5) -> 1.5
        minmax(0.0, -0.3) -> -0.3
    """
    v1 = np.asarray(v1, dtype=np.float64)
    v2 = np.asarray(v2, dtype=np.float64)
    negative = np.minimum(v1 * (v1 < 0), v2 * (v2 < 0))
    positive = np.maximum(v1 * (v1 > 0), v2 * (v2 > 0))
    return negative + positive


def combine(v1: np.ndarray, v2: np.ndarray) -> np.ndarray:
    """
    NaN-aware minmax: a missing value on one side yields the other side.

    NaN on both sides stays NaN.
    """
    v1 = np.asarray(v1, dtype=np.float64)
    v2 = np.asarray(v2, dtype=np.float64)
    nan1 = np.isnan(v1)
    nan2 = np.isnan(v2)
    with np.errstate(invalid="ignore"):
        merged = minmax(np.where(nan1, 0.0, v1), np.where(nan2, 0.0, v2))
    merged = np.where(nan1, v2, merged)
    return np.where(nan2 & ~nan1, v1, merged)
