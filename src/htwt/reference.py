"""
Growth reference tables for height/weight scoring.

Holds the four CDC 2000 growth-chart tables (infant length, infant weight,
child stature, child weight) as immutable per-sex column arrays. Tables are
loaded once by the caller and passed explicitly to the scorers.

CDC files use the layout::

    Sex,Agemos,L,M,S,P3,P5,P10,P25,P50,P75,P90,P95,P97

with Sex 1 = male and 2 = female.
"""

from pathlib import Path
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union
import logging
from importlib import resources

import numpy as np
import pandas as pd

from .config import (
    CDC_SEX_CODES,
    CDC_TABLE_NAMES,
    LMS_COLUMNS,
    PERCENTILE_COLUMNS,
    REFERENCE_COLUMNS,
    SEXES,
    Cohort,
    MeasurementKind,
)

TableKey = Tuple[MeasurementKind, Cohort]

SEX_NAMES = {"M": "male", "F": "female"}


def _freeze(values: np.ndarray) -> np.ndarray:
    arr = np.array(values, dtype=np.float64)
    arr.flags.writeable = False
    return arr


def _validate_sex_frame(frame: pd.DataFrame, label: str) -> None:
    """Check required columns and age ordering for one sex of a table."""
    missing = [col for col in ["age"] + LMS_COLUMNS if col not in frame.columns]
    if missing:
        raise ValueError(f"{label}: missing required columns {missing}")
    if len(frame) < 2:
        raise ValueError(f"{label}: at least two reference rows are required")

    ages = frame["age"].to_numpy(dtype=np.float64)
    if not np.all(np.isfinite(ages)):
        raise ValueError(f"{label}: non-finite age values")
    if not np.all(np.diff(ages) > 0):
        raise ValueError(f"{label}: ages must be strictly increasing")
    if np.any(frame["M"].to_numpy(dtype=np.float64) <= 0):
        raise ValueError(f"{label}: non-positive M values")
    if np.any(frame["S"].to_numpy(dtype=np.float64) <= 0):
        raise ValueError(f"{label}: non-positive S values")


class ReferenceTable:
    """
    One growth reference table, split by sex.

    Attributes:
        kind: Measurement the table describes (height or weight)
        cohort: Age cohort the table covers (infant or child)
    """

    def __init__(
        self,
        kind: Union[MeasurementKind, str],
        cohort: Union[Cohort, str],
        frames: Mapping[str, pd.DataFrame],
    ) -> None:
        self.kind = MeasurementKind(kind)
        self.cohort = Cohort(cohort)
        self._columns: Dict[str, Dict[str, np.ndarray]] = {}

        for sex, frame in frames.items():
            if sex not in SEXES:
                raise ValueError(f"Sex values must be 'M' or 'F', got {sex!r}")
            label = f"{self.kind.value}_{self.cohort.value}_{SEX_NAMES[sex]}"
            _validate_sex_frame(frame, label)
            self._columns[sex] = {
                col: _freeze(frame[col].to_numpy())
                for col in REFERENCE_COLUMNS
                if col in frame.columns
            }

    def __repr__(self) -> str:
        return (
            f"ReferenceTable(kind={self.kind.value!r}, cohort={self.cohort.value!r}, "
            f"sexes={sorted(self._columns)})"
        )

    @property
    def key(self) -> TableKey:
        return (self.kind, self.cohort)

    @property
    def sexes(self) -> Tuple[str, ...]:
        return tuple(sex for sex in SEXES if sex in self._columns)

    def column(self, sex: str, column: str) -> Tuple[np.ndarray, np.ndarray]:
        """
        Get (age, value) arrays for one statistic column.

        Args:
            sex: 'M' or 'F'
            column: 'L', 'M', 'S' or a percentile column such as 'P97'

        Returns:
            Read-only arrays of ages (months) and values

        Raises:
            KeyError: If the table has no rows for the sex or lacks the column
        """
        if sex not in self._columns:
            raise KeyError(f"No reference rows for sex {sex!r} in {self!r}")
        columns = self._columns[sex]
        if column not in columns:
            raise KeyError(f"Column {column!r} not found in {self!r}")
        return columns["age"], columns[column]

    def frame(self, sex: str) -> pd.DataFrame:
        """Copy of the rows for one sex as a DataFrame."""
        if sex not in self._columns:
            raise KeyError(f"No reference rows for sex {sex!r} in {self!r}")
        return pd.DataFrame({col: arr.copy() for col, arr in self._columns[sex].items()})

    def has_column(self, sex: str, column: str) -> bool:
        return sex in self._columns and column in self._columns[sex]

    def age_range(self, sex: str) -> Tuple[float, float]:
        ages = self.column(sex, "age")[0]
        return float(ages[0]), float(ages[-1])


class ReferenceData:
    """
    The set of reference tables used for one scoring run.

    Owned by the caller and injected into the scorers; keyed by
    (measurement kind, cohort).
    """

    def __init__(self, tables: Iterable[ReferenceTable]) -> None:
        self._tables: Dict[TableKey, ReferenceTable] = {}
        for table in tables:
            if table.key in self._tables:
                raise ValueError(
                    f"Duplicate reference table for {table.kind.value}/{table.cohort.value}"
                )
            self._tables[table.key] = table

    def __contains__(self, key: TableKey) -> bool:
        return key in self._tables

    def __len__(self) -> int:
        return len(self._tables)

    def __iter__(self) -> Iterator[ReferenceTable]:
        return iter(self._tables.values())

    def __repr__(self) -> str:
        keys = [f"{kind.value}_{cohort.value}" for kind, cohort in self._tables]
        return f"ReferenceData(tables={keys})"

    def table(
        self, kind: Union[MeasurementKind, str], cohort: Union[Cohort, str]
    ) -> ReferenceTable:
        key = (MeasurementKind(kind), Cohort(cohort))
        if key not in self._tables:
            raise KeyError(f"Reference data not found for {key[0].value}_{key[1].value}")
        return self._tables[key]

    @classmethod
    def from_frames(cls, frames: Mapping[str, pd.DataFrame]) -> "ReferenceData":
        """
        Build reference data from CDC-layout DataFrames.

        Args:
            frames: Mapping of CDC table name ('lenageinf', 'wtageinf',
                'statage', 'wtage') to its DataFrame

        Raises:
            ValueError: If a name is unknown or a frame is malformed
        """
        names = {name: key for key, name in CDC_TABLE_NAMES.items()}
        tables = []
        for name, frame in frames.items():
            if name not in names:
                raise ValueError(
                    f"Unknown reference table '{name}'. Expected one of {sorted(names)}"
                )
            kind, cohort = names[name]
            tables.append(ReferenceTable(kind, cohort, split_cdc_frame(frame, name)))
        return cls(tables)

    @classmethod
    def from_csv_dir(cls, path: Union[str, Path]) -> "ReferenceData":
        """Read the four CDC CSV files from a directory."""
        directory = Path(path)
        if not directory.is_dir():
            raise FileNotFoundError(f"Reference data directory not found: {directory}")
        frames = {}
        for name in CDC_TABLE_NAMES.values():
            csv_path = directory / f"{name}.csv"
            if not csv_path.exists():
                raise FileNotFoundError(f"Reference table {csv_path.name} not found in {directory}")
            frames[name] = pd.read_csv(csv_path)
        return cls.from_frames(frames)

    @classmethod
    def from_arrays(cls, data: Mapping[str, np.ndarray]) -> "ReferenceData":
        """
        Build reference data from structured arrays keyed '{kind}_{cohort}_{sex}'.

        This is the layout written by scripts/download_data.py.
        """
        tables = []
        for kind, cohort in CDC_TABLE_NAMES:
            frames = {}
            for sex, sex_name in SEX_NAMES.items():
                key = f"{kind.value}_{cohort.value}_{sex_name}"
                if key not in data:
                    logging.warning(f"Reference data not found for {key}")
                    continue
                arr = data[key]
                frames[sex] = pd.DataFrame({name: arr[name] for name in arr.dtype.names})
            if frames:
                tables.append(ReferenceTable(kind, cohort, frames))
        return cls(tables)


def split_cdc_frame(frame: pd.DataFrame, name: str) -> Dict[str, pd.DataFrame]:
    """
    Split a CDC-layout table into per-sex frames with an 'age' column.

    Non-numeric rows (CDC files repeat the header between sexes) are dropped.
    """
    missing = [col for col in ["Sex", "Agemos"] + LMS_COLUMNS if col not in frame.columns]
    if missing:
        raise ValueError(f"{name}: missing required columns {missing}")

    keep = ["Sex", "Agemos"] + LMS_COLUMNS + [
        col for col in PERCENTILE_COLUMNS if col in frame.columns
    ]
    numeric = frame[keep].apply(pd.to_numeric, errors="coerce")
    numeric = numeric.dropna(subset=["Sex", "Agemos"])
    numeric = numeric.rename(columns={"Agemos": "age"})

    result = {}
    for code, sex in CDC_SEX_CODES.items():
        rows = numeric[numeric["Sex"] == code].drop(columns="Sex")
        if len(rows):
            result[sex] = rows.reset_index(drop=True)
    if not result:
        raise ValueError(f"{name}: no rows with Sex 1 (male) or 2 (female)")
    return result


def _get_reference_data_path() -> str:
    """Get path to growth reference data within the package."""
    return "htwt.data"


def _read_npz(handle) -> Dict[str, np.ndarray]:
    loaded = np.load(handle)
    try:
        return {key: loaded[key] for key in loaded.files}
    finally:
        loaded.close()


def load_reference_data(path: Optional[Union[str, Path]] = None) -> ReferenceData:
    """
    Load CDC growth reference data from an .npz bundle.

    Args:
        path: Bundle written by scripts/download_data.py. Defaults to the
            copy installed with the package.

    Returns:
        ReferenceData with the infant and child height/weight tables

    Raises:
        FileNotFoundError: If the bundle cannot be found
        ValueError: If the bundle is corrupted or has an invalid structure
    """
    try:
        if path is None:
            with (
                resources.files(_get_reference_data_path())
                .joinpath("growth_references.npz")
                .open("rb") as f
            ):
                data = _read_npz(f)
        else:
            with open(path, "rb") as f:
                data = _read_npz(f)
    except (FileNotFoundError, ModuleNotFoundError):
        raise FileNotFoundError(
            "Growth reference data file not found. "
            "Run 'scripts/download_data.py' to generate reference data."
        ) from None
    except Exception as e:
        raise ValueError(
            f"Failed to load growth reference data: {e}. "
            "Run 'scripts/download_data.py' to regenerate reference data."
        ) from e

    if not validate_loaded_data_integrity(data):
        raise ValueError("Growth reference data failed integrity validation")
    return ReferenceData.from_arrays(data)


def validate_loaded_data_integrity(data: Mapping[str, np.ndarray]) -> bool:
    """
    Validate integrity of loaded reference data.

    Checks for required keys, structured fields and data ranges.
    Logs warnings for any issues found but doesn't raise exceptions.

    Args:
        data: Loaded reference data dictionary

    Returns:
        True if data passes all validation checks, False otherwise
    """
    if not data:
        logging.warning("Loaded reference data is empty")
        return False

    expected_keys = [
        f"{kind.value}_{cohort.value}_{sex_name}"
        for kind, cohort in CDC_TABLE_NAMES
        for sex_name in SEX_NAMES.values()
    ]
    missing_keys = [key for key in expected_keys if key not in data]
    if missing_keys:
        logging.warning(f"Missing expected reference arrays: {missing_keys}")
        return False

    for key in expected_keys:
        arr = data[key]
        names = getattr(getattr(arr, "dtype", None), "names", None)
        if names is None:
            logging.warning(f"Reference array {key} is not a structured array")
            return False
        missing_fields = [f for f in ["age"] + LMS_COLUMNS if f not in names]
        if missing_fields:
            logging.warning(f"Reference array {key} missing fields {missing_fields}")
            return False
        if np.any(arr["age"] < 0):
            logging.warning(f"Negative ages found in reference array {key}")
            return False
        if np.any(arr["M"] <= 0):
            logging.warning(f"Non-positive M values in reference array {key}")
            return False

    return True
