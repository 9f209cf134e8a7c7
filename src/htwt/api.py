"""
Height and weight cleaning API.

Scores pediatric height/weight tables against CDC growth references in one
of two modes:

- ``"percentile"``: signed distance outside a percentile band
  (HT_FLAG, WT_FLAG, AGE_Y)
- ``"zscore"``: LMS z-scores (HT_Z, WT_Z)

Example:
    reference = load_reference_data()
    cleaned = clean_htwt(df, reference, mode="percentile", lower_percentile=3)
"""

from typing import Any, Dict, Optional, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, ValidationError, field_validator

from .config import (
    AGE_YEARS_OUTPUT,
    DEFAULT_COLUMNS,
    MONTHS_PER_YEAR,
    SCORE_COLUMNS,
    SUBJECT_COLUMNS,
    SUBJECT_SEX_CODES,
)
from .methods import registry
from .methods.base import BaseScorer
from .reference import ReferenceData
from .spline import SplineBank
from .zscores import _log_unit_warnings


class ColumnMapping(BaseModel):
    """
    Names of the caller's columns.

    Attributes:
        height_col (str): Height in cm ('HT' by default).
        weight_col (str): Weight in kg ('WT' by default).
        sex_col (str): Sex, 1/'M' male and 0/'F' female ('SEX' by default).
        age_col (str): Age in months ('AGE_M' by default).
        row_id_col (Optional[str]): Unique row identifier. Positional ids are
            used when None.
    """

    height_col: str = DEFAULT_COLUMNS["height_col"]
    weight_col: str = DEFAULT_COLUMNS["weight_col"]
    sex_col: str = DEFAULT_COLUMNS["sex_col"]
    age_col: str = DEFAULT_COLUMNS["age_col"]
    row_id_col: Optional[str] = None

    @field_validator("height_col", "weight_col", "sex_col", "age_col")
    @classmethod
    def validate_column_names(cls, v: str) -> str:
        """Ensure column names are valid string identifiers."""
        if not isinstance(v, str) or not v.strip():
            raise ValueError("Column name must be a non-empty string")
        return v

    @field_validator("row_id_col")
    @classmethod
    def validate_optional_column(cls, v: Optional[str]) -> Optional[str]:
        """Ensure optional column name is valid if provided."""
        if v is not None and (not isinstance(v, str) or not v.strip()):
            raise ValueError("Row id column name must be a valid string")
        return v

    def required(self) -> Dict[str, str]:
        """Subject field -> caller column for every mapped column."""
        mapped = {
            "age_months": self.age_col,
            "sex": self.sex_col,
            "height": self.height_col,
            "weight": self.weight_col,
        }
        if self.row_id_col is not None:
            mapped["row_id"] = self.row_id_col
        return mapped


def _resolve_columns(
    columns: Optional[Union[ColumnMapping, Dict[str, Any]]]
) -> ColumnMapping:
    if columns is None:
        return ColumnMapping()
    if isinstance(columns, ColumnMapping):
        mapping = columns
    else:
        try:
            mapping = ColumnMapping(**columns)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e}") from e
    names = list(mapping.required().values())
    if len(names) != len(set(names)):
        raise ValueError("Configuration must specify unique column names")
    return mapping


def _sex_code(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, np.integer, np.floating)):
        if not np.isfinite(value) or not float(value).is_integer():
            return None
        value = int(value)
    return SUBJECT_SEX_CODES.get(str(value).strip().upper())


def normalize_sex(values: pd.Series) -> pd.Series:
    """Map sex codes to 'M'/'F'; anything unrecognized becomes None."""
    return values.map(_sex_code).astype(object)


def build_subjects(
    df: pd.DataFrame, columns: Optional[Union[ColumnMapping, Dict[str, Any]]] = None
) -> pd.DataFrame:
    """
    Extract the subject table from a caller DataFrame.

    Args:
        df: Caller DataFrame
        columns: Column mapping (defaults HT, WT, SEX, AGE_M)

    Returns:
        DataFrame with columns row_id, age_months, sex, height, weight in
        the caller's row order

    Raises:
        ValueError: If a mapped column is missing or row ids are not unique
    """
    mapping = _resolve_columns(columns)
    for column in mapping.required().values():
        if column not in df.columns:
            raise ValueError(f"Column '{column}' does not exist in DataFrame")

    if mapping.row_id_col is not None:
        row_id = df[mapping.row_id_col].to_numpy()
        if not pd.Index(row_id).is_unique:
            raise ValueError(f"Row id column '{mapping.row_id_col}' must be unique")
    else:
        row_id = np.arange(len(df))

    subjects = pd.DataFrame(
        {
            "row_id": row_id,
            "age_months": pd.to_numeric(df[mapping.age_col], errors="coerce").to_numpy(
                dtype=np.float64
            ),
            "sex": normalize_sex(df[mapping.sex_col]).to_numpy(),
            "height": pd.to_numeric(df[mapping.height_col], errors="coerce").to_numpy(
                dtype=np.float64
            ),
            "weight": pd.to_numeric(df[mapping.weight_col], errors="coerce").to_numpy(
                dtype=np.float64
            ),
        },
        columns=SUBJECT_COLUMNS,
    )
    return subjects


def make_scorer(
    mode: str,
    reference: ReferenceData,
    lower_percentile: int = 3,
    splines: Optional[SplineBank] = None,
) -> BaseScorer:
    """
    Build the scorer for a mode name from the registry.

    Raises:
        ValueError: If the mode is unknown or its configuration is invalid
    """
    if mode not in registry:
        raise ValueError(
            f"Unsupported mode '{mode}'. Supported modes: {sorted(registry)}"
        )
    scorer_cls = registry[mode]
    if mode == "percentile":
        return scorer_cls(reference, lower_percentile=lower_percentile, splines=splines)
    return scorer_cls(reference, splines=splines)


def score_subjects(subjects: pd.DataFrame, scorer: BaseScorer) -> pd.DataFrame:
    """Score a subject table; returns height_score/weight_score indexed by row_id."""
    return scorer.score(subjects)


def clean_htwt(
    df: pd.DataFrame,
    reference: ReferenceData,
    mode: str = "percentile",
    lower_percentile: int = 3,
    columns: Optional[Union[ColumnMapping, Dict[str, Any]]] = None,
    splines: Optional[SplineBank] = None,
) -> pd.DataFrame:
    """
    Score height and weight anomalies.

    Args:
        df: DataFrame with height (cm), weight (kg), sex and age (months)
        reference: CDC reference tables
        mode: "percentile" (band flags) or "zscore" (LMS z-scores)
        lower_percentile: Lower band edge for percentile mode: 3, 5, 10 or 25
        columns: Column mapping for the caller's column names
        splines: Optional spline cache to reuse across calls

    Returns:
        Copy of df with HT_FLAG, WT_FLAG, AGE_Y (percentile mode) or HT_Z,
        WT_Z (zscore mode) appended. Same rows, order and index as df.

    Raises:
        ValueError: If the mode, percentile or column mapping is invalid
    """
    scorer = make_scorer(mode, reference, lower_percentile, splines)
    subjects = build_subjects(df, columns)

    if len(subjects):
        _log_unit_warnings(
            subjects["age_months"].to_numpy(),
            subjects["height"].to_numpy(),
            subjects["weight"].to_numpy(),
        )

    result = score_subjects(subjects, scorer)

    out = df.copy()
    for kind, column in scorer.output_columns.items():
        out[column] = result[SCORE_COLUMNS[kind]].to_numpy()
    if mode == "percentile":
        out[AGE_YEARS_OUTPUT] = subjects["age_months"].to_numpy() / MONTHS_PER_YEAR
    return out
