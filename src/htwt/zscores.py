"""
Scoring kernels for height and weight measurements.

This module provides vectorized functions for scoring anthropometric
measurements against interpolated CDC reference values: LMS z-scores and
percentile-band distance flags, plus the input checks shared by both
scoring modes.
"""

from typing import Optional, Tuple
import logging

import numpy as np
from numba import jit

from .cohorts import clamp_ages, minmax
from .config import AGE_LIMIT_MONTHS

# Constants
L_ZERO_THRESHOLD = 1e-6


@jit(nopython=True, cache=True)
def _lms_kernel(
    X: np.ndarray, L: np.ndarray, M: np.ndarray, S: np.ndarray, out: np.ndarray
) -> None:
    for i in range(X.shape[0]):
        x = X[i]
        lam = L[i]
        mu = M[i]
        sigma = S[i]
        if not (np.isfinite(x) and np.isfinite(lam) and np.isfinite(mu)):
            continue
        if not (x > 0.0 and mu > 0.0 and sigma > 0.0):
            continue
        if abs(lam) < L_ZERO_THRESHOLD:
            out[i] = np.log(x / mu) / sigma
        else:
            out[i] = ((x / mu) ** lam - 1.0) / (lam * sigma)


def lms_zscore(
    X: np.ndarray, L: np.ndarray, M: np.ndarray, S: np.ndarray
) -> np.ndarray:
    """
    Calculate LMS z-scores using the Box-Cox transformation.

    Implements the LMS method from Cole (1990) used by the CDC 2000 growth
    charts. Three curves: median (M), coefficient of variation (S), Box-Cox
    power (L).

    For L ≠ 0: z = ((X/M)^L - 1) / (L * S), i.e. (X^L - M^L) / (M^L * L * S)
    For L = 0: z = ln(X/M) / S

    |L| below L_ZERO_THRESHOLD takes the log branch; both branches agree
    there to well within float64 precision.

    Args:
        X: Observed values (cm or kg)
        L: Lambda (power, skewness parameter)
        M: Mu (median at age/sex)
        S: Sigma (coefficient of variation at age/sex)

    Returns:
        Z-scores with the shape of X. NaN where an input is missing or
        X, M or S is not positive.
    """
    X = np.asarray(X, dtype=np.float64)
    if X.size == 0:
        return np.full(X.shape, np.nan)
    original_shape = X.shape
    X_flat = np.ascontiguousarray(X).ravel()
    L_flat = np.ascontiguousarray(np.broadcast_to(L, original_shape), dtype=np.float64).ravel()
    M_flat = np.ascontiguousarray(np.broadcast_to(M, original_shape), dtype=np.float64).ravel()
    S_flat = np.ascontiguousarray(np.broadcast_to(S, original_shape), dtype=np.float64).ravel()

    z_flat = np.full(X_flat.shape, np.nan, dtype=np.float64)
    _lms_kernel(X_flat, L_flat, M_flat, S_flat, z_flat)
    return z_flat.reshape(original_shape)


def percentile_flag(
    X: np.ndarray, low: np.ndarray, high: np.ndarray
) -> np.ndarray:
    """
    Signed distance of a measurement outside a percentile band.

    Values below the low percentile curve contribute X - low (negative);
    values above the high curve contribute X - high (positive). Values inside
    the band, or exactly on either edge, score 0.

    Args:
        X: Observed values (cm or kg)
        low: Low percentile curve at each subject's age (e.g. P3)
        high: High percentile curve at each subject's age (e.g. P97)

    Returns:
        Flags in measurement units; NaN where any input is missing
    """
    X = np.asarray(X, dtype=np.float64)
    low_excess = X - np.asarray(low, dtype=np.float64)
    high_excess = X - np.asarray(high, dtype=np.float64)
    missing = np.isnan(low_excess) | np.isnan(high_excess)
    with np.errstate(invalid="ignore"):
        flags = minmax(
            np.where(low_excess < 0, low_excess, 0.0),
            np.where(high_excess > 0, high_excess, 0.0),
        )
    return np.where(missing, np.nan, flags)


def _handle_age_limit(agemos: np.ndarray, clamp: bool) -> Tuple[np.ndarray, np.ndarray]:
    """
    Apply the reference age limit.

    Args:
        agemos: Ages in months
        clamp: Clamp ages >240 months to 240 (z-scores) instead of masking
            them out (percentile flags)

    Returns:
        Tuple of (ages to score with, mask of rows that must be NaN)
    """
    agemos = np.asarray(agemos, dtype=np.float64)
    with np.errstate(invalid="ignore"):
        over_limit = agemos > AGE_LIMIT_MONTHS
    if not np.any(over_limit):
        return agemos, np.zeros(agemos.shape, dtype=bool)

    if clamp:
        logging.warning(
            f"{int(over_limit.sum())} age values >{AGE_LIMIT_MONTHS:g} months detected - "
            f"clamping to {AGE_LIMIT_MONTHS:g} months for z-scores"
        )
        return clamp_ages(agemos), np.zeros(agemos.shape, dtype=bool)

    logging.warning(
        f"{int(over_limit.sum())} age values >{AGE_LIMIT_MONTHS:g} months detected - "
        "setting flags to NaN for these entries"
    )
    return agemos, over_limit


def _log_unit_warnings(
    agemos: np.ndarray, height: Optional[np.ndarray], weight: Optional[np.ndarray]
) -> None:
    """Log warnings for potential unit mismatches."""
    if height is not None and np.any(np.isfinite(height)):
        if np.nanmean(height) < 20:
            logging.warning(
                "Height values have mean <20 - heights suggest cm but units suspect"
            )
        elif np.nanpercentile(height, 95) > 200:
            logging.warning(
                "Height values >200 cm detected - may be inches instead of cm"
            )
    if weight is not None and np.any(np.isfinite(weight)):
        if np.nanpercentile(weight, 99) > 300:
            logging.warning(
                "Weight values >300 kg detected - may be lbs instead of kg"
            )
    if agemos is not None and np.any(np.isfinite(agemos)):
        if np.nanmax(agemos) > 241 and np.nanmean(agemos) > 30:
            logging.warning(
                "Age values >241 months detected - ages exceed the 240-month reference range"
            )
        elif np.nanmax(agemos) <= 21 and _older_than_ages(height, weight):
            logging.warning(
                "Age values <=21 with child-sized measurements - ages may be in years instead of months"
            )


def _older_than_ages(height: Optional[np.ndarray], weight: Optional[np.ndarray]) -> bool:
    """True if median height/weight is beyond anything seen before 21 months."""
    if height is not None and np.any(np.isfinite(height)) and np.nanmedian(height) > 100:
        return True
    if weight is not None and np.any(np.isfinite(weight)) and np.nanmedian(weight) > 16:
        return True
    return False
