"""
Natural cubic spline interpolation of reference statistics over age.

Reference tables are published at discrete ages (every month or half month).
Each statistic column (L, M, S or a percentile) is interpolated between those
ages with a natural cubic spline: zero second derivative at both endpoints,
exact at every published age.
"""

from typing import Dict, Tuple, Union
import threading

import numpy as np
from scipy.interpolate import CubicSpline

from .config import Cohort, MeasurementKind
from .reference import ReferenceData

SplineKey = Tuple[MeasurementKind, Cohort, str, str]


class NaturalSpline:
    """
    Natural cubic spline through (age, value) pairs.

    Evaluation outside the fitted range extrapolates with the boundary
    segment polynomial. Instances are immutable after construction.

    Args:
        ages: Strictly increasing ages in months
        values: Reference values at those ages
    """

    def __init__(self, ages: np.ndarray, values: np.ndarray) -> None:
        x = np.asarray(ages, dtype=np.float64)
        y = np.asarray(values, dtype=np.float64)
        if x.ndim != 1 or x.shape != y.shape:
            raise ValueError("Ages and values must be 1D arrays of equal length")
        if x.size < 2:
            raise ValueError("At least two points are required to fit a spline")
        if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
            raise ValueError("Spline points must be finite")
        if not np.all(np.diff(x) > 0):
            raise ValueError("Spline ages must be strictly increasing and unique")

        self._spline = CubicSpline(x, y, bc_type="natural", extrapolate=True)
        self.knots = x.copy()
        self.knots.flags.writeable = False

    def __call__(self, ages: Union[float, np.ndarray]) -> np.ndarray:
        return self._spline(np.asarray(ages, dtype=np.float64))

    def __repr__(self) -> str:
        return f"NaturalSpline(knots={self.knots.size}, range=[{self.knots[0]}, {self.knots[-1]}])"


class SplineBank:
    """
    Cache of fitted splines for one ReferenceData.

    One spline is fitted per (kind, cohort, sex, column) on first use and
    reused for every later evaluation. Safe to share between threads.
    """

    def __init__(self, reference: ReferenceData) -> None:
        self.reference = reference
        self._splines: Dict[SplineKey, NaturalSpline] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._splines)

    def get(
        self,
        kind: Union[MeasurementKind, str],
        cohort: Union[Cohort, str],
        sex: str,
        column: str,
    ) -> NaturalSpline:
        key = (MeasurementKind(kind), Cohort(cohort), sex, column)
        spline = self._splines.get(key)
        if spline is None:
            with self._lock:
                spline = self._splines.get(key)
                if spline is None:
                    table = self.reference.table(key[0], key[1])
                    spline = NaturalSpline(*table.column(sex, column))
                    self._splines[key] = spline
        return spline

    def evaluate(
        self,
        kind: Union[MeasurementKind, str],
        cohort: Union[Cohort, str],
        sex: str,
        column: str,
        ages: np.ndarray,
    ) -> np.ndarray:
        """Interpolate one reference column at the given ages."""
        return self.get(kind, cohort, sex, column)(ages)
