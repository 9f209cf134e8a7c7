"""
Base scorer class for all height/weight scoring methods.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import logging

import numpy as np
import pandas as pd

from ..cohorts import cohort_mask
from ..config import SCORE_COLUMNS, SEXES, SUBJECT_COLUMNS, Cohort, MeasurementKind
from ..pipeline import CohortPipeline
from ..reference import ReferenceData
from ..spline import SplineBank
from ..zscores import _handle_age_limit


class BaseScorer(ABC):
    """
    Abstract base class for all scoring methods.

    Each scoring method should inherit from this class and implement the
    `score_cohort` and `validate_config` methods. The base class routes
    subjects to (sex, cohort) buckets, applies the age-limit policy and
    merges cohort results by row id.

    Subclasses set:
        output_columns: Output column name per measurement kind
        clamp_age: True to clamp ages >240 months, False to leave them missing

    Example subclass implementation:
        class MedianScorer(BaseScorer):
            output_columns = {MeasurementKind.HEIGHT: "HT_MED", MeasurementKind.WEIGHT: "WT_MED"}
            clamp_age = True

            def validate_config(self) -> None:
                pass

            def score_cohort(self, kind, cohort, sex, ages, values):
                return values - self.splines.evaluate(kind, cohort, sex, "M", ages)
    """

    output_columns: Dict[MeasurementKind, str] = {}
    clamp_age: bool = False

    def __init__(
        self, reference: ReferenceData, splines: Optional[SplineBank] = None
    ) -> None:
        if not isinstance(reference, ReferenceData):
            raise ValueError("reference must be a ReferenceData instance")
        if splines is not None and splines.reference is not reference:
            raise ValueError("Spline bank was built from different reference data")
        self.reference = reference
        self.splines = splines if splines is not None else SplineBank(reference)
        self.pipeline = CohortPipeline(logic="MINMAX")

    @abstractmethod
    def score_cohort(
        self,
        kind: MeasurementKind,
        cohort: Cohort,
        sex: str,
        ages: np.ndarray,
        values: np.ndarray,
    ) -> np.ndarray:
        """
        Score measurements of one kind for subjects in one (sex, cohort) bucket.

        Args:
            kind: Measurement kind being scored
            cohort: Cohort whose reference table applies
            sex: 'M' or 'F'
            ages: Ages in months, all inside the cohort range
            values: Measurements (cm or kg)

        Returns:
            Scores aligned with values
        """
        pass

    @abstractmethod
    def validate_config(self) -> None:
        """
        Validate method-specific configurations.

        Raises:
            ValueError: If configuration is invalid.
        """
        pass

    def score(self, subjects: pd.DataFrame) -> pd.DataFrame:
        """
        Score a subject table.

        Args:
            subjects: DataFrame with columns row_id, age_months, sex ('M'/'F'
                or missing), height, weight

        Returns:
            DataFrame indexed by row_id with height_score and weight_score.
            Rows with missing sex/age, or outside every cohort, are NaN.
        """
        for column in SUBJECT_COLUMNS:
            self._validate_column(subjects, column)

        index = pd.Index(subjects["row_id"], name="row_id")
        if not index.is_unique:
            raise ValueError("Row ids must be unique")

        ages = pd.to_numeric(subjects["age_months"], errors="coerce").to_numpy(
            dtype=np.float64
        )
        # pd.NA cannot be compared element-wise; map every missing marker to None
        sex_values = subjects["sex"].astype(object)
        sex = sex_values.where(sex_values.notna(), None).to_numpy(dtype=object)
        with np.errstate(invalid="ignore"):
            valid = np.isfinite(ages) & (ages >= 0) & np.isin(sex, SEXES)
        n_invalid = int((~valid).sum())
        if n_invalid:
            logging.warning(
                f"{n_invalid} rows with missing or invalid age/sex - scores set to NaN"
            )

        ages, na_mask = _handle_age_limit(ages, clamp=self.clamp_age)
        scoreable = valid & ~na_mask

        measurements = {
            kind: pd.to_numeric(subjects[kind.value], errors="coerce").to_numpy(
                dtype=np.float64
            )
            for kind in SCORE_COLUMNS
        }

        partials: List[Dict[str, pd.Series]] = []
        for sex_code in SEXES:
            for cohort in Cohort:
                mask = scoreable & (sex == sex_code) & cohort_mask(ages, cohort)
                if not np.any(mask):
                    continue
                partial = {}
                for kind, column in SCORE_COLUMNS.items():
                    if not self._has_table(kind, cohort, sex_code):
                        continue
                    scores = self.score_cohort(
                        kind, cohort, sex_code, ages[mask], measurements[kind][mask]
                    )
                    partial[column] = pd.Series(scores, index=index[mask])
                partials.append(partial)

        return self.pipeline.combine_scores(
            partials, index, list(SCORE_COLUMNS.values())
        )

    def _has_table(self, kind: MeasurementKind, cohort: Cohort, sex: str) -> bool:
        if (kind, cohort) not in self.reference:
            logging.warning(f"Reference data not found for {kind.value}_{cohort.value}")
            return False
        if sex not in self.reference.table(kind, cohort).sexes:
            logging.warning(
                f"Reference data not found for {kind.value}_{cohort.value} sex {sex}"
            )
            return False
        return True

    def _validate_column(self, df: pd.DataFrame, column: str) -> None:
        """
        Validate that a column exists in the DataFrame.

        Args:
            df: DataFrame to validate.
            column: Column name to check.

        Raises:
            ValueError: If column does not exist.
        """
        if column not in df.columns:
            raise ValueError(f"Column '{column}' does not exist in DataFrame")
