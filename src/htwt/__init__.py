"""
htwt: pediatric height and weight anomaly scoring against CDC growth charts.
"""

from .api import ColumnMapping, build_subjects, clean_htwt, make_scorer, score_subjects
from .config import Cohort, MeasurementKind
from .methods import registry
from .methods.percentile.scorer import PercentileScorer
from .methods.zscore.scorer import ZScoreScorer
from .reference import ReferenceData, ReferenceTable, load_reference_data
from .spline import NaturalSpline, SplineBank

__all__ = [
    "ColumnMapping",
    "Cohort",
    "MeasurementKind",
    "NaturalSpline",
    "PercentileScorer",
    "ReferenceData",
    "ReferenceTable",
    "SplineBank",
    "ZScoreScorer",
    "build_subjects",
    "clean_htwt",
    "load_reference_data",
    "make_scorer",
    "registry",
    "score_subjects",
]
