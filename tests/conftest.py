from typing import Dict

import numpy as np
import pandas as pd
import pytest
from scipy import stats

from htwt.reference import ReferenceData

PERCENTILES = (3, 5, 10, 25, 50, 75, 90, 95, 97)
PERCENTILE_Z = {f"P{p}": float(stats.norm.ppf(p / 100)) for p in PERCENTILES}

# Ages laid out like the CDC files: 0, 0.5, 1.5, ... for infants and
# 24, 24.5, 25.5, ..., 240 for children
INFANT_AGES = np.concatenate(([0.0], np.arange(0.5, 36.0, 1.0)))
CHILD_AGES = np.concatenate(([24.0], np.arange(24.5, 240.0, 1.0), [240.0]))

# Rows of the CDC statage table (males, 24-26.5 months)
CDC_STATAGE_MALE_EXCERPT = """Sex,Agemos,L,M,S,P3,P5,P10,P25,P50,P75,P90,P95,P97
1,24,0.941523967,86.45220101,0.040321528,79.91084447,80.72977321,81.99171445,84.10289217,86.45220101,88.80524943,90.92619137,92.19687928,93.02265441
1,24.5,1.00720807,86.86160934,0.040395626,80.26037074,81.08868489,82.36400989,84.49470553,86.86160934,89.22804829,91.35753004,92.63176749,93.4592255
1,25.5,0.837251351,87.65247282,0.040577525,81.00529109,81.83445178,83.11387215,85.25987059,87.65247282,90.05153337,92.22071155,93.52217412,94.3686634
1,26.5,0.681492975,88.42326434,0.040723122,81.73415967,82.56611826,83.85218049,86.00709443,88.42326434,90.84973134,93.04844815,94.37035985,95.23103012
"""


def lms_value(L, M, S, z):
    """Measurement at z-score z (inverse LMS, L != 0)."""
    return M * (1 + L * S * z) ** (1 / L)


def make_cdc_frame(ages, L, M, S) -> pd.DataFrame:
    """CDC-layout table for both sexes; females are scaled 3% smaller."""
    frames = []
    for sex_code, scale in ((1, 1.0), (2, 0.97)):
        data = {"Sex": sex_code, "Agemos": ages, "L": L, "M": M * scale, "S": S}
        for column, z in PERCENTILE_Z.items():
            data[column] = lms_value(L, M * scale, S, z)
        frames.append(pd.DataFrame(data))
    return pd.concat(frames, ignore_index=True)


def height_lms(ages, shift=1.0):
    L = 1.0 + 0.2 * np.sin(ages / 10.0)
    M = (50.0 + 25.0 * np.log1p(ages / 4.0)) * shift
    S = np.full_like(ages, 0.04)
    return L, M, S


def weight_lms(ages, shift=1.0):
    L = -0.4 + 0.1 * np.cos(ages / 30.0)
    M = (3.5 + 0.9 * ages**0.75) * shift
    S = 0.12 + 0.0003 * ages
    return L, M, S


def synthetic_frames() -> Dict[str, pd.DataFrame]:
    """Smooth CDC-like tables; child medians sit 1% above infant medians."""
    return {
        "lenageinf": make_cdc_frame(INFANT_AGES, *height_lms(INFANT_AGES)),
        "wtageinf": make_cdc_frame(INFANT_AGES, *weight_lms(INFANT_AGES)),
        "statage": make_cdc_frame(CHILD_AGES, *height_lms(CHILD_AGES, 1.01)),
        "wtage": make_cdc_frame(CHILD_AGES, *weight_lms(CHILD_AGES, 1.01)),
    }


@pytest.fixture(scope="session")
def reference() -> ReferenceData:
    """Synthetic reference data with all four tables."""
    return ReferenceData.from_frames(synthetic_frames())


@pytest.fixture
def cdc_frames() -> Dict[str, pd.DataFrame]:
    return synthetic_frames()


@pytest.fixture(scope="session")
def statage_excerpt() -> pd.DataFrame:
    from io import StringIO

    return pd.read_csv(StringIO(CDC_STATAGE_MALE_EXCERPT))


@pytest.fixture
def subjects() -> pd.DataFrame:
    """Subject table covering infant, overlap, child, too-old and missing rows."""
    return pd.DataFrame(
        {
            "row_id": [10, 11, 12, 13, 14, 15],
            "age_months": [6.0, 30.0, 120.0, 250.0, np.nan, 60.0],
            "sex": ["M", "F", "M", "F", "M", None],
            "height": [68.0, 90.0, 140.0, 165.0, 80.0, 110.0],
            "weight": [8.0, 13.0, 32.0, 55.0, 10.0, 18.0],
        }
    )
