#!/usr/bin/env python3
"""
Glacier Lake Data Loader Module.

This module loads the two lake tables (the lake inventory and the climate /
mass-balance table), maps their raw column names to the canonical names used
by the models, joins them on the lake identifier and applies documented
single-record corrections.

ASSUMPTIONS:
- Both tables carry a unique lake identifier (GLIMS ID)
- Tables fit in memory
- Lakes present in only one table are not usable and are dropped (inner join)

EDGE CASES:
- Missing key columns or an empty join raise DataIntegrityError
- Duplicate identifiers raise DataIntegrityError
- Files with unsupported extensions raise DataError
- A record correction whose position is out of range is skipped with a warning
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Sequence, Union

import numpy as np
import pandas as pd

from glof_risk.utils.logging_utils import logger, log_step, LoggingManager
from glof_risk.model.exceptions import DataError, DataIntegrityError
from glof_risk.model.constants import (
    LAKE_ID_COL, REGION_COL, GLOF_COL, GLOF_YEAR_COL
)

SUPPORTED_SUFFIXES = ('.csv', '.parquet', '.xlsx', '.xls')


@dataclass(frozen=True)
class RecordCorrection:
    """
    A named override of one cell at a fixed record position.

    position is 0-based over the merged table, which is sorted by lake
    identifier. When lake_id is given the record at that position must carry
    that identifier.
    """
    name: str
    position: int
    column: str
    value: Any
    reason: str = ""
    lake_id: Optional[str] = None


# The 1544th merged record (ordered by lake identifier) carries a
# mis-entered region label in the reference inventory.
REGION_LABEL_FIX_1544 = RecordCorrection(
    name="region_label_fix_1544",
    position=1543,
    column=REGION_COL,
    value="Eastern Himalaya",
    reason="known data-entry anomaly in the region label of record 1544",
)

DEFAULT_CORRECTIONS = (REGION_LABEL_FIX_1544,)


def read_table(path: Union[str, Path]) -> pd.DataFrame:
    """
    Read a CSV, Parquet or Excel table.

    Args:
        path: Path to the file

    Returns:
        The loaded table

    Raises:
        DataError: If the file does not exist or has an unsupported format
    """
    path = Path(path)
    if not path.exists():
        raise DataError(f"Data file not found: {path}")

    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise DataError(f"Unsupported file format: {suffix}")

    if suffix == '.csv':
        table = pd.read_csv(path)
    elif suffix == '.parquet':
        table = pd.read_parquet(path)
    else:
        table = pd.read_excel(path)

    logger.info(f"Loaded {len(table)} rows from {path}")
    return table


def load_and_merge(
    primary_table: pd.DataFrame,
    secondary_table: pd.DataFrame,
    join_key_primary: str = LAKE_ID_COL,
    join_key_secondary: str = LAKE_ID_COL
) -> pd.DataFrame:
    """
    Inner-join two lake tables on their identifier.

    Rows are ordered by the identifier, so record positions do not depend on
    the row order of either input. The secondary key is renamed to the
    primary key. Columns present in both tables keep the primary table's
    values.

    Args:
        primary_table: Lake inventory table
        secondary_table: Climate / mass-balance table
        join_key_primary: Identifier column in the primary table
        join_key_secondary: Identifier column in the secondary table

    Returns:
        New merged DataFrame sorted by identifier with a fresh RangeIndex

    Raises:
        DataIntegrityError: If a key is missing or duplicated, or the join is empty
    """
    if join_key_primary not in primary_table.columns:
        raise DataIntegrityError(f"Join key '{join_key_primary}' not found in primary table")
    if join_key_secondary not in secondary_table.columns:
        raise DataIntegrityError(f"Join key '{join_key_secondary}' not found in secondary table")

    for label, table, key in (("primary", primary_table, join_key_primary),
                              ("secondary", secondary_table, join_key_secondary)):
        duplicated = table[key][table[key].duplicated()].unique()
        if len(duplicated) > 0:
            raise DataIntegrityError(
                f"Lake identifier is not unique in {label} table",
                details=list(duplicated[:10])
            )

    right = secondary_table.rename(columns={join_key_secondary: join_key_primary})
    overlap = [c for c in right.columns if c in primary_table.columns and c != join_key_primary]
    if overlap:
        logger.warning(f"Columns present in both tables, keeping primary values: {overlap}")
        right = right.drop(columns=overlap)

    merged = primary_table.merge(
        right, on=join_key_primary, how="inner", sort=True
    ).reset_index(drop=True)

    if merged.empty:
        raise DataIntegrityError("Join of lake tables produced zero rows")

    n_dropped_primary = len(primary_table) - len(merged)
    n_dropped_secondary = len(secondary_table) - len(merged)
    logger.info(
        f"Merged lake tables on '{join_key_primary}': {len(merged)} rows "
        f"({n_dropped_primary} primary and {n_dropped_secondary} secondary records unmatched)"
    )
    return merged


def apply_corrections(
    frame: pd.DataFrame,
    corrections: Iterable[RecordCorrection] = DEFAULT_CORRECTIONS
) -> pd.DataFrame:
    """
    Apply named single-record corrections, logging each one.

    Args:
        frame: Merged lake table
        corrections: Corrections to apply in order

    Returns:
        New DataFrame with the corrections applied

    Raises:
        DataIntegrityError: If a correction targets an unknown column or its
            lake identifier guard does not match
    """
    result = frame.copy()
    for correction in corrections:
        if correction.column not in result.columns:
            raise DataIntegrityError(
                f"Correction '{correction.name}' targets unknown column '{correction.column}'"
            )
        if not 0 <= correction.position < len(result):
            logger.warning(
                f"Skipping correction '{correction.name}': record {correction.position} "
                f"out of range for {len(result)} rows"
            )
            continue

        row_label = result.index[correction.position]
        lake_id = result[LAKE_ID_COL].iloc[correction.position] if LAKE_ID_COL in result.columns else None
        if correction.lake_id is not None and lake_id != correction.lake_id:
            raise DataIntegrityError(
                f"Correction '{correction.name}' expected lake {correction.lake_id} "
                f"at record {correction.position}, found {lake_id}"
            )

        old_value = result.at[row_label, correction.column]
        result.at[row_label, correction.column] = correction.value
        logger.warning(
            f"Applied correction '{correction.name}' to lake {lake_id} (record {correction.position}): "
            f"{correction.column} {old_value!r} -> {correction.value!r}"
            + (f" ({correction.reason})" if correction.reason else "")
        )
    return result


def ensure_glof_flag(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Return a copy with a 0/1 GLOF flag, deriving it from the GLOF year when absent.
    """
    result = frame.copy()
    if GLOF_COL not in result.columns:
        if GLOF_YEAR_COL not in result.columns:
            raise DataIntegrityError(f"Neither '{GLOF_COL}' nor '{GLOF_YEAR_COL}' present in lake table")
        result[GLOF_COL] = result[GLOF_YEAR_COL].notna().astype(int)
        logger.info(f"Derived '{GLOF_COL}' flag from '{GLOF_YEAR_COL}'")
    elif GLOF_YEAR_COL not in result.columns:
        result[GLOF_YEAR_COL] = np.nan
    result[GLOF_COL] = pd.to_numeric(result[GLOF_COL], errors="coerce")
    return result


class DataLoader:
    """
    Loader for the two glacier lake tables.

    Parameters
    ----------
    primary_path : str
        Path to the lake inventory table.
    secondary_path : str
        Path to the climate / mass-balance table.
    primary_key : str
        Identifier column in the primary table (after column mapping).
    secondary_key : str
        Identifier column in the secondary table (after column mapping).
    column_mapping : dict, optional
        Raw-to-canonical column renames applied to both tables.
    corrections : sequence of RecordCorrection, optional
        Record corrections applied after the join.
    """

    def __init__(
        self,
        primary_path: Union[str, Path],
        secondary_path: Union[str, Path],
        primary_key: str = LAKE_ID_COL,
        secondary_key: str = LAKE_ID_COL,
        column_mapping: Optional[Dict[str, str]] = None,
        corrections: Sequence[RecordCorrection] = DEFAULT_CORRECTIONS
    ):
        self.primary_path = Path(primary_path)
        self.secondary_path = Path(secondary_path)
        self.primary_key = primary_key
        self.secondary_key = secondary_key
        self.column_mapping = dict(column_mapping or {})
        self.corrections = tuple(corrections)

    def _apply_column_mapping(self, data: pd.DataFrame) -> pd.DataFrame:
        rename_dict = {k: v for k, v in self.column_mapping.items() if k in data.columns}
        if rename_dict:
            logger.info(f"Renaming columns: {rename_dict}")
            return data.rename(columns=rename_dict)
        return data

    @log_step("Loading lake tables")
    def load_data(self) -> pd.DataFrame:
        """
        Load both tables, join them and apply record corrections.

        Returns:
            Merged, corrected lake table with a GLOF flag column
        """
        primary = self._apply_column_mapping(read_table(self.primary_path))
        secondary = self._apply_column_mapping(read_table(self.secondary_path))

        merged = load_and_merge(primary, secondary, self.primary_key, self.secondary_key)
        if self.primary_key != LAKE_ID_COL:
            merged = merged.rename(columns={self.primary_key: LAKE_ID_COL})

        corrected = apply_corrections(merged, self.corrections)
        result = ensure_glof_flag(corrected)
        LoggingManager.log_dataframe_info(logger, "lakes", result)
        return result
