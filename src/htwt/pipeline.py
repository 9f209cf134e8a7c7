"""Cohort pipeline for combining partial scores into one result per row."""

from typing import Dict, List

import numpy as np
import pandas as pd

from .cohorts import combine


class CohortPipeline:
    """
    Pipeline for merging per-cohort partial results by row id.

    Each partial result maps output column names to Series indexed by the
    row ids that cohort scored. Rows scored by more than one cohort are
    merged with the sign-masked min/max rule (MINMAX).
    """

    def __init__(self, logic: str = "MINMAX") -> None:
        """
        Initialize with combination logic.

        Args:
            logic: "MINMAX".

        Raises:
            KeyError: If logic is not supported.
        """
        supported = ["MINMAX"]
        if logic not in supported:
            raise KeyError(f"Unsupported combination logic '{logic}'")
        self.logic = logic

    def combine_scores(
        self,
        partials: List[Dict[str, pd.Series]],
        index: pd.Index,
        columns: List[str],
    ) -> pd.DataFrame:
        """
        Combine partial results into a frame covering every row id.

        Args:
            partials: List of dicts from cohort scoring, each with column to Series.
            index: Row ids of the full result; each appears exactly once.
            columns: Output columns, present even if no partial has them.

        Returns:
            DataFrame indexed by row id. Rows never scored are NaN.

        Raises:
            ValueError: If index has duplicates or a partial has unknown row ids.
        """
        if not index.is_unique:
            raise ValueError("Row ids must be unique")

        combined = {}
        for col in columns:
            values = np.full(len(index), np.nan, dtype=np.float64)
            for partial in partials:
                series = partial.get(col)
                if series is None or series.empty:
                    continue
                positions = index.get_indexer(series.index)
                if np.any(positions < 0):
                    raise ValueError(f"Partial result for '{col}' has unknown row ids")
                incoming = series.to_numpy(dtype=np.float64)
                values[positions] = combine(values[positions], incoming)
            combined[col] = values

        return pd.DataFrame(combined, index=index, columns=columns)
