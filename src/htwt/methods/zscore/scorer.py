# ZScoreScorer class

"""
LMS z-score scoring of pediatric heights and weights.

Computes age- and sex-specific z-scores against the CDC 2000 infant
(0-36 months) and child (24-240 months) LMS tables. L, M and S are
interpolated at each subject's age with natural cubic splines.
"""

import numpy as np

from ...config import ZSCORE_OUTPUT, Cohort, MeasurementKind
from ...zscores import lms_zscore
from ..base import BaseScorer


class ZScoreScorer(BaseScorer):
    """
    LMS z-score scorer.

    - Ages above 240 months are clamped to 240 and scored against the child tables.
    - Ages 24-36 months are scored against both infant and child tables and
      merged with the sign-masked min/max rule.
    - Missing sex or age gives NaN.

    Usage:
        scorer = ZScoreScorer(reference)
        result = scorer.score(subjects)  # height_score / weight_score are z-scores

    Attributes:
        reference (ReferenceData): Reference tables used for interpolation.
    """

    output_columns = dict(ZSCORE_OUTPUT)
    clamp_age = True

    def __init__(self, reference, splines=None):
        super().__init__(reference, splines)
        self.validate_config()

    def validate_config(self) -> None:
        """
        Validate that the reference data can produce z-scores.

        Raises:
            ValueError: If no table carries L, M and S for any sex
        """
        if len(self.reference) == 0:
            raise ValueError("Reference data contains no tables")
        for table in self.reference:
            for sex in table.sexes:
                for column in ("L", "M", "S"):
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
        L = self.splines.evaluate(kind, cohort, sex, "L", ages)
        M = self.splines.evaluate(kind, cohort, sex, "M", ages)
        S = self.splines.evaluate(kind, cohort, sex, "S", ages)
        return lms_zscore(values, L, M, S)
