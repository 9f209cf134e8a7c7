"""
Configuration constants for height/weight scoring.
"""

from enum import Enum


class MeasurementKind(str, Enum):
    HEIGHT = "height"
    WEIGHT = "weight"


class Cohort(str, Enum):
    INFANT = "infant"
    CHILD = "child"


# Cohort validity ranges in months (inclusive on both ends)
COHORT_RANGES = {
    Cohort.INFANT: (0.0, 36.0),
    Cohort.CHILD: (24.0, 240.0),
}

# Oldest age covered by the reference tables
AGE_LIMIT_MONTHS = 240.0
MONTHS_PER_YEAR = 12.0

# CDC file names for each reference table
CDC_TABLE_NAMES = {
    (MeasurementKind.HEIGHT, Cohort.INFANT): "lenageinf",
    (MeasurementKind.WEIGHT, Cohort.INFANT): "wtageinf",
    (MeasurementKind.HEIGHT, Cohort.CHILD): "statage",
    (MeasurementKind.WEIGHT, Cohort.CHILD): "wtage",
}

# Reference table columns
LMS_COLUMNS = ["L", "M", "S"]
PERCENTILE_COLUMNS = ["P3", "P5", "P10", "P25", "P50", "P75", "P90", "P95", "P97"]
REFERENCE_COLUMNS = ["age"] + LMS_COLUMNS + PERCENTILE_COLUMNS

# Lower percentile -> (low column, high column)
PERCENTILE_BANDS = {
    3: ("P3", "P97"),
    5: ("P5", "P95"),
    10: ("P10", "P90"),
    25: ("P25", "P75"),
}

# Sex codes: CDC reference files use 1 = male, 2 = female.
# Subject tables use 1 = male, 0 = female, or 'M'/'F'.
SEXES = ("M", "F")
CDC_SEX_CODES = {1: "M", 2: "F"}
SUBJECT_SEX_CODES = {
    "1": "M",
    "M": "M",
    "MALE": "M",
    "0": "F",
    "F": "F",
    "FEMALE": "F",
}

# Default caller column names
DEFAULT_COLUMNS = {
    "height_col": "HT",
    "weight_col": "WT",
    "sex_col": "SEX",
    "age_col": "AGE_M",
}

# Output columns per scoring mode
ZSCORE_OUTPUT = {MeasurementKind.HEIGHT: "HT_Z", MeasurementKind.WEIGHT: "WT_Z"}
FLAG_OUTPUT = {MeasurementKind.HEIGHT: "HT_FLAG", MeasurementKind.WEIGHT: "WT_FLAG"}
AGE_YEARS_OUTPUT = "AGE_Y"

# Subject table columns
SUBJECT_COLUMNS = ["row_id", "age_months", "sex", "height", "weight"]
SCORE_COLUMNS = {
    MeasurementKind.HEIGHT: "height_score",
    MeasurementKind.WEIGHT: "weight_score",
}
