"""
Percentile-band flagging of pediatric heights and weights.

Flags measurements lying outside a symmetric band of CDC percentile curves
(3-97, 5-95, 10-90 or 25-75). The flag is the signed distance outside the
band in the measurement's own units: 0 inside the band, negative below the
low curve, positive above the high curve.
"""

from typing import Any, Optional, Tuple
import numbers

import numpy as np
from pydantic import BaseModel, ValidationError, field_validator

from ...config import FLAG_OUTPUT, PERCENTILE_BANDS, Cohort, MeasurementKind
from ...reference import ReferenceData
from ...spline import SplineBank
from ...zscores import percentile_flag
from ..base import BaseScorer


class PercentileConfig(BaseModel):
    """
    Configuration for percentile-band flagging.

    Attributes:
        lower_percentile (int): Lower edge of the normal band; the upper edge
            is symmetric (3 -> 3-97, 5 -> 5-95, 10 -> 10-90, 25 -> 25-75).
    """

    lower_percentile: int = 3

    @field_validator("lower_percentile", mode="before")
    @classmethod
    def validate_lower_percentile(cls, v: Any) -> int:
        """Ensure the percentile selects one of the supported bands."""
        if isinstance(v, str) and v.strip().isdigit():
            v = int(v)
        if (
            isinstance(v, (bool, np.bool_))
            or not isinstance(v, numbers.Integral)
            or int(v) not in PERCENTILE_BANDS
        ):
            supported = ", ".join(str(p) for p in PERCENTILE_BANDS)
            raise ValueError(f"lower_percentile must be one of {supported}, got {v!r}")
        return int(v)

    @property
    def band(self) -> Tuple[str, str]:
        return PERCENTILE_BANDS[self.lower_percentile]


class PercentileScorer(BaseScorer):
    """
    Percentile-band scorer.

    - Ages above 240 months are left missing (NaN), not clamped.
    - Ages 24-36 months are flagged against both infant and child tables and
      merged with the sign-masked min/max rule.
    - A value exactly on a band edge is not flagged.

    Usage:
        scorer = PercentileScorer(reference, lower_percentile=5)
        result = scorer.score(subjects)  # height_score / weight_score are flags

    Attributes:
        config (PercentileConfig): Band selection.
    """

    output_columns = dict(FLAG_OUTPUT)
    clamp_age = False

    def __init__(
        self,
        reference: ReferenceData,
        lower_percentile: int = 3,
        splines: Optional[SplineBank] = None,
    ) -> None:
        """
        Initialize PercentileScorer.

        Args:
            reference: Reference tables with percentile columns
            lower_percentile: 3, 5, 10 or 25
            splines: Optional shared spline cache for the same reference data

        Raises:
            ValueError: If lower_percentile is unsupported or the tables lack
                the band's percentile columns
        """
        try:
            self.config = PercentileConfig(lower_percentile=lower_percentile)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e}") from e

        super().__init__(reference, splines)
        self.validate_config()

    def validate_config(self) -> None:
        """
        Validate that every table carries the band's percentile columns.

        Raises:
            ValueError: If reference data is empty or a column is missing
        """
        if len(self.reference) == 0:
            raise ValueError("Reference data contains no tables")
        for table in self.reference:
            for sex in table.sexes:
                for column in self.config.band:
                    if not table.has_column(sex, column):
                        raise ValueError(
                            f"Reference table {table.kind.value}_{table.cohort.value} "
                            f"lacks column '{column}'"
                        )

    def score_cohort(
        self,
        kind: MeasurementKind,
        cohort: Cohort,
        sex: str,
        ages: np.ndarray,
        values: np.ndarray,
    ) -> np.ndarray:
        low_col, high_col = self.config.band
        low = self.splines.evaluate(kind, cohort, sex, low_col, ages)
        high = self.splines.evaluate(kind, cohort, sex, high_col, ages)
        return percentile_flag(values, low, high)
