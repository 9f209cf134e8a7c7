"""
Performance benchmarks for height/weight scoring.
Targets: <1μs/row for the LMS kernel at 100K rows, <10s for 1M rows end to end.
"""

import time

import numpy as np
import pandas as pd

from htwt.api import clean_htwt
from htwt.zscores import lms_zscore


def benchmark_lms_zscore():
    """Benchmark LMS z-score calculation performance."""
    n = 100000

    np.random.seed(42)
    X = np.random.normal(50, 10, n)
    L = np.random.normal(0.1, 0.05, n)
    M = np.full(n, 50.0)
    S = np.full(n, 0.1)

    # Warm-up JIT
    _ = lms_zscore(X[:100], L[:100], M[:100], S[:100])

    start_time = time.perf_counter()
    z_scores = lms_zscore(X, L, M, S)
    elapsed_seconds = time.perf_counter() - start_time

    microseconds_per_row = (elapsed_seconds * 1e6) / n
    print(f"lms_zscore: {microseconds_per_row:.4f} μs/row")

    assert microseconds_per_row < 1.0, f"{microseconds_per_row:.4f} μs/row"
    assert len(z_scores) == n
    assert not np.all(np.isnan(z_scores))


def benchmark_clean_htwt(reference):
    """Benchmark both scoring modes on 1M rows."""
    n = 1000000

    np.random.seed(42)
    df = pd.DataFrame(
        {
            "AGE_M": np.random.uniform(0, 240, n),
            "SEX": np.random.choice([0, 1], n),
            "HT": np.random.normal(120, 15, n),
            "WT": np.random.normal(25, 5, n),
        }
    )

    for mode in ("zscore", "percentile"):
        start_time = time.perf_counter()
        clean_htwt(df, reference, mode=mode)
        elapsed_seconds = time.perf_counter() - start_time
        print(f"clean_htwt({mode}): {elapsed_seconds:.2f}s for {n} rows")
        assert elapsed_seconds < 10.0, f"{mode}: {elapsed_seconds:.2f}s"


def test_performance_targets(reference):
    """Run performance validations."""
    benchmark_lms_zscore()
    benchmark_clean_htwt(reference)
