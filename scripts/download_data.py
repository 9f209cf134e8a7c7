#!/usr/bin/env python3
"""
Download and process CDC growth chart data into NumPy .npz format.

This script downloads the CDC 2000 growth chart reference tables used by the
htwt package, parses the CSVs, and saves them as compressed NumPy structured
arrays.

Infant tables (lenageinf, wtageinf) cover birth to 36 months.
Child tables (statage, wtage) cover 24 to 240 months.
"""

import argparse
import hashlib
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np
import requests
from requests.adapters import HTTPAdapter
from tqdm import tqdm
from urllib3.util.retry import Retry

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

CDC_BASE_URL = "https://www.cdc.gov/growthcharts/data/zscore"

# Required and optional columns for parsing
REQUIRED_COLS = ["Sex", "Agemos", "L", "M", "S"]
PERCENTILE_COLS = ["P3", "P5", "P10", "P25", "P50", "P75", "P90", "P95", "P97"]

# CDC file name -> (measurement kind, cohort)
DATA_SOURCES: Dict[str, Tuple[str, str]] = {
    "lenageinf": ("height", "infant"),
    "wtageinf": ("weight", "infant"),
    "statage": ("height", "child"),
    "wtage": ("weight", "child"),
}

SEX_CODES = {1: "male", 2: "female"}


def download_csv(url: str, timeout: int = 30) -> str:
    """Download CSV content from URL with retries."""
    try:
        # Create retry configuration
        retry_strategy = Retry(
            total=3,
            status_forcelist=[429, 500, 502, 503, 504],
            backoff_factor=2,  # Exponential backoff
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)

        with requests.Session() as session:
            session.mount("https://", adapter)
            session.mount("http://", adapter)
            response = session.get(url, timeout=timeout, verify=True)
            response.raise_for_status()
            return response.text
    except Exception as e:
        logger.error(f"Failed to download {url}: {e}")
        raise


def compute_sha256(content: str) -> str:
    """Compute SHA-256 hash of content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def validate_array(arr: np.ndarray, array_name: str) -> None:
    """Validate parsed array for common issues."""
    if arr.size == 0:
        raise ValueError(f"{array_name}: empty array")

    ages = arr["age"]
    if not np.all(np.isfinite(ages)):
        raise ValueError(f"{array_name}: non-finite age values")
    if len(ages) > 1 and not np.all(ages[:-1] < ages[1:]):
        raise ValueError(f"{array_name}: age not strictly increasing")

    # Check for potential unit mismatch (age in years instead of months)
    if np.max(ages) > 241:
        logger.warning(
            f"{array_name}: Age values up to {np.max(ages):.1f} months detected. "
            "Values >241 months suggest input may not be in months."
        )

    # L can be negative; M, S and percentiles cannot
    for col in arr.dtype.names:
        values = arr[col]
        if col in ("age", "L"):
            continue
        if not np.all(np.isfinite(values) | np.isnan(values)):
            raise ValueError(f"{array_name}: non-finite {col} values")
        if np.any((values < 0) & (~np.isnan(values))):
            raise ValueError(f"{array_name}: negative {col} values")


def _parse_value(val: str) -> float:
    val = val.strip()
    if not val:
        return np.nan
    try:
        return float(val)
    except ValueError:
        return np.nan


def parse_cdc_csv(content: str, name: str) -> Dict[str, np.ndarray]:
    """
    Parse a CDC CSV into per-sex structured arrays.

    Rows whose Sex is not 1 or 2 (including header lines repeated inside
    the file) are skipped.

    Returns:
        Dict keyed '{kind}_{cohort}_{sex}' with fields age, L, M, S and
        any percentile columns present
    """
    if name not in DATA_SOURCES:
        raise ValueError(f"Unknown CDC table '{name}'")
    kind, cohort = DATA_SOURCES[name]

    lines = content.strip().split("\n")
    header = [col.replace("\ufeff", "").strip() for col in lines[0].split(",")]

    missing = [col for col in REQUIRED_COLS if col not in header]
    if missing:
        raise ValueError(f"{name}: missing required columns {missing}")

    value_cols = ["Agemos", "L", "M", "S"] + [c for c in PERCENTILE_COLS if c in header]
    col_indices = [header.index(col) for col in value_cols]
    sex_idx = header.index("Sex")

    rows: Dict[str, List[List[float]]] = {sex: [] for sex in SEX_CODES.values()}
    for line in lines[1:]:
        if not line.strip():
            continue
        values = line.split(",")
        sex_code = _parse_value(values[sex_idx]) if sex_idx < len(values) else np.nan
        if sex_code not in SEX_CODES:
            continue
        rows[SEX_CODES[int(sex_code)]].append(
            [_parse_value(values[i]) if i < len(values) else np.nan for i in col_indices]
        )

    # Normalize the age column name
    dt = np.dtype([("age" if col == "Agemos" else col, "f8") for col in value_cols])

    result = {}
    for sex, data in rows.items():
        if not data:
            logger.warning(f"{name}: no rows for {sex}")
            continue
        data_array = np.array(data, dtype=float)
        structured = np.zeros(data_array.shape[0], dtype=dt)
        for i, field in enumerate(dt.names):
            structured[field] = data_array[:, i]

        array_key = f"{kind}_{cohort}_{sex}"
        validate_array(structured, array_key)
        result[array_key] = structured

    return result


def save_npz(data: Dict[str, np.ndarray], output_path: Path) -> None:
    """Save data dictionary as compressed NumPy .npz file."""
    np.savez_compressed(output_path, **data)
    logger.info(f"Saved {len(data)} arrays to {output_path}")


def default_output_path() -> Path:
    return Path(__file__).parent.parent / "src" / "htwt" / "data" / "growth_references.npz"


def main(strict_mode: bool = False, output_path: Optional[Path] = None) -> None:
    """Main function to download and process all data."""
    output_path = Path(output_path) if output_path is not None else default_output_path()
    output_path.parent.mkdir(parents=True, exist_ok=True)

    all_data: Dict[str, np.ndarray] = {}

    # Track failed sources for strict mode
    failed_sources = []

    with tqdm(total=len(DATA_SOURCES), desc="Fetching sources") as pbar:
        for name in DATA_SOURCES:
            url = f"{CDC_BASE_URL}/{name}.csv"
            pbar.set_postfix({"source": name})
            pbar.update(1)

            try:
                csv_content = download_csv(url)
                hash_value = compute_sha256(csv_content)
                all_data.update(parse_cdc_csv(csv_content, name))

                # Store metadata per source
                metadata = {
                    "url": url,
                    "hash": hash_value,
                    "timestamp": str(np.datetime64("now")),
                }
                for key, value in metadata.items():
                    all_data[f"metadata_{name}_{key}"] = np.array(
                        [value], dtype="U256"
                    )

            except Exception as e:
                failed_sources.append(name)
                logger.error(f"Failed to process {name}: {e}")
                continue

    # Check for strict mode failures
    if strict_mode and failed_sources:
        raise RuntimeError(
            f"Strict mode failed: Unable to process sources: {', '.join(failed_sources)}"
        )

    save_npz(all_data, output_path)

    # Verify saved data
    with np.load(output_path) as loaded:
        logger.info(f"Verification: {len(loaded.files)} arrays saved")
        for key in loaded.files:
            if not key.startswith("metadata_"):
                logger.info(f"  {key}: shape {loaded[key].shape}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Download CDC growth chart reference data."
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Strict mode: exit on any error instead of continuing with warnings",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output .npz path (default: src/htwt/data/growth_references.npz)",
    )
    args = parser.parse_args()

    main(strict_mode=args.strict, output_path=args.output)
