# Tests for BaseScorer

import logging

import numpy as np
import pandas as pd
import pytest

from htwt.config import Cohort, MeasurementKind
from htwt.methods.base import BaseScorer
from htwt.reference import ReferenceData
from htwt.spline import SplineBank


class MedianScorer(BaseScorer):
    """Scores each measurement as its distance from the interpolated median."""

    output_columns = {MeasurementKind.HEIGHT: "HT_MED", MeasurementKind.WEIGHT: "WT_MED"}
    clamp_age = True

    def validate_config(self):
        pass

    def score_cohort(self, kind, cohort, sex, ages, values):
        return values - self.splines.evaluate(kind, cohort, sex, "M", ages)


class CohortTagScorer(BaseScorer):
    """Scores infant rows -1 and child rows +1 so cohort routing is visible."""

    clamp_age = False

    def validate_config(self):
        pass

    def score_cohort(self, kind, cohort, sex, ages, values):
        return np.full(len(ages), -1.0 if cohort == Cohort.INFANT else 1.0)


def test_tc001_instantiating_base_scorer_raises_type_error(reference):
    with pytest.raises(TypeError):
        BaseScorer(reference)  # type: ignore[abstract]


def test_tc002_subclass_without_score_cohort_raises_type_error(reference):
    class Concrete(BaseScorer):
        def validate_config(self):
            pass

    with pytest.raises(TypeError):
        Concrete(reference)  # type: ignore[abstract]


def test_tc003_rejects_non_reference_data():
    with pytest.raises(ValueError, match="ReferenceData"):
        MedianScorer({"statage": None})


def test_tc004_rejects_spline_bank_for_other_reference(reference, statage_excerpt):
    other = ReferenceData.from_frames({"statage": statage_excerpt})
    with pytest.raises(ValueError, match="different reference data"):
        MedianScorer(reference, splines=SplineBank(other))


def test_tc005_shares_given_spline_bank(reference):
    bank = SplineBank(reference)
    scorer = MedianScorer(reference, splines=bank)
    assert scorer.splines is bank


def test_tc006_validate_column_raises_for_nonexistent_column(reference):
    scorer = MedianScorer(reference)
    df = pd.DataFrame({"existing_col": [1, 2, 3]})
    with pytest.raises(
        ValueError, match="Column 'missing_col' does not exist in DataFrame"
    ):
        scorer._validate_column(df, "missing_col")


def test_tc007_score_requires_subject_columns(reference, subjects):
    scorer = MedianScorer(reference)
    with pytest.raises(ValueError, match="Column 'weight' does not exist"):
        scorer.score(subjects.drop(columns="weight"))


def test_tc008_score_rejects_duplicate_row_ids(reference, subjects):
    subjects.loc[1, "row_id"] = 10
    with pytest.raises(ValueError, match="Row ids must be unique"):
        MedianScorer(reference).score(subjects)


def test_tc009_score_indexed_by_row_id(reference, subjects):
    result = MedianScorer(reference).score(subjects)
    assert list(result.index) == [10, 11, 12, 13, 14, 15]
    assert list(result.columns) == ["height_score", "weight_score"]


def test_tc010_missing_age_or_sex_gives_nan(reference, subjects, caplog):
    caplog.set_level(logging.WARNING)
    result = MedianScorer(reference).score(subjects)
    assert result.loc[14].isna().all()
    assert result.loc[15].isna().all()
    assert "2 rows with missing or invalid age/sex" in caplog.text


def test_tc011_median_measurement_scores_zero(reference):
    ages = np.array([6.5, 120.5])
    infant_m = reference.table("height", "infant").column("M", "M")
    child_m = reference.table("height", "child").column("M", "M")
    heights = [
        infant_m[1][infant_m[0] == 6.5][0],
        child_m[1][child_m[0] == 120.5][0],
    ]
    subjects = pd.DataFrame(
        {
            "row_id": [0, 1],
            "age_months": ages,
            "sex": ["M", "M"],
            "height": heights,
            "weight": [np.nan, np.nan],
        }
    )
    result = MedianScorer(reference).score(subjects)
    np.testing.assert_allclose(result["height_score"], [0.0, 0.0], atol=1e-9)
    assert result["weight_score"].isna().all()


def test_tc012_routes_rows_to_cohorts(reference):
    subjects = pd.DataFrame(
        {
            "row_id": [0, 1, 2, 3],
            "age_months": [10.0, 30.0, 100.0, 250.0],
            "sex": ["F", "F", "M", "M"],
            "height": [1.0, 1.0, 1.0, 1.0],
            "weight": [1.0, 1.0, 1.0, 1.0],
        }
    )
    result = CohortTagScorer(reference).score(subjects)
    assert result.loc[0, "height_score"] == -1.0
    # overlap rows get both: minmax(-1, 1) = -1 + 1
    assert result.loc[1, "height_score"] == 0.0
    assert result.loc[2, "height_score"] == 1.0
    assert np.isnan(result.loc[3, "height_score"])


def test_tc013_clamp_age_scores_old_rows_as_240(reference):
    subjects = pd.DataFrame(
        {
            "row_id": [0, 1],
            "age_months": [240.0, 300.0],
            "sex": ["M", "M"],
            "height": [170.0, 170.0],
            "weight": [60.0, 60.0],
        }
    )
    result = MedianScorer(reference).score(subjects)
    assert result.loc[0, "height_score"] == pytest.approx(result.loc[1, "height_score"])


def test_tc014_missing_table_skipped_with_warning(statage_excerpt, caplog):
    caplog.set_level(logging.WARNING)
    reference = ReferenceData.from_frames({"statage": statage_excerpt})
    subjects = pd.DataFrame(
        {
            "row_id": [0],
            "age_months": [25.0],
            "sex": ["M"],
            "height": [87.0],
            "weight": [12.0],
        }
    )
    result = MedianScorer(reference).score(subjects)
    assert np.isfinite(result.loc[0, "height_score"])
    assert np.isnan(result.loc[0, "weight_score"])
    assert "Reference data not found for height_infant" in caplog.text
    assert "Reference data not found for weight_child" in caplog.text


def test_tc015_score_does_not_modify_input(reference, subjects):
    copy_df = subjects.copy(deep=True)
    MedianScorer(reference).score(subjects)
    pd.testing.assert_frame_equal(subjects, copy_df)


def test_tc016_score_handles_empty_subjects(reference):
    subjects = pd.DataFrame(
        {
            "row_id": pd.Series([], dtype=int),
            "age_months": pd.Series([], dtype=float),
            "sex": pd.Series([], dtype=object),
            "height": pd.Series([], dtype=float),
            "weight": pd.Series([], dtype=float),
        }
    )
    result = MedianScorer(reference).score(subjects)
    assert result.empty
    assert list(result.columns) == ["height_score", "weight_score"]


def test_tc017_initialization_accepts_method_specific_configs(reference):
    class Concrete(MedianScorer):
        def __init__(self, reference, offset: float = 0.0):
            super().__init__(reference)
            self.offset = offset
            self.validate_config()

        def validate_config(self):
            if self.offset < 0:
                raise ValueError("offset must be non-negative")

    assert Concrete(reference, offset=1.5).offset == 1.5
    with pytest.raises(ValueError, match="offset must be non-negative"):
        Concrete(reference, offset=-1.0)


def test_tc018_nullable_string_sex_missing_gives_nan(reference, caplog):
    caplog.set_level(logging.WARNING)
    subjects = pd.DataFrame(
        {
            "row_id": [0, 1, 2],
            "age_months": [30.0, 30.0, 30.0],
            "sex": pd.array(["M", pd.NA, "F"], dtype="string"),
            "height": [92.0, 92.0, 92.0],
            "weight": [13.0, 13.0, 13.0],
        }
    )
    result = MedianScorer(reference).score(subjects)
    assert np.isfinite(result.loc[0, "height_score"])
    assert np.isfinite(result.loc[2, "height_score"])
    assert result.loc[1].isna().all()
    assert "1 rows with missing or invalid age/sex" in caplog.text
