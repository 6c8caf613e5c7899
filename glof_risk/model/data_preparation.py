"""
Per-model data preparation.

Turns the shared, read-only prepared lake dataset into the arrays one model
is fit on. The model's row filter is applied first, then every row with a
missing value in any column the spec references is excluded; rows are never
imputed. The shared dataset is not modified: each call works on its own copy.

ASSUMPTIONS:
- The response is coded 0/1
- Grouping factors are categorical or string-like columns

EDGE CASES:
- A spec column absent from the dataset raises DataIntegrityError
- No rows left after filtering raises EmptyDatasetError
- Levels of a grouping factor that no fitted row uses are dropped
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Union

import numpy as np
import pandas as pd

from glof_risk.utils.logging_utils import logger
from glof_risk.model.exceptions import DataIntegrityError, EmptyDatasetError
from glof_risk.model.model_spec import ModelSpec, split_term
from glof_risk.data.data_preprocessor import PreparedDataset


@dataclass
class ModelData:
    """
    Container for the arrays of one model fit.

    X holds one column per term in ``terms`` order, y the 0/1 response,
    group_idx the 0-based level code of every row per grouping factor and
    group_levels the level labels in code order.
    """
    spec_name: str
    frame: pd.DataFrame
    X: np.ndarray
    y: np.ndarray
    terms: List[str]
    group_idx: Dict[str, np.ndarray] = field(default_factory=dict)
    group_levels: Dict[str, List[str]] = field(default_factory=dict)
    n_filtered_out: int = 0
    n_incomplete: int = 0

    @property
    def n_obs(self) -> int:
        return len(self.y)

    @property
    def base_rate(self) -> float:
        """Empirical share of positive outcomes among the fitted rows."""
        return float(np.mean(self.y))


def design_matrix(frame: pd.DataFrame, terms: Sequence[str]) -> np.ndarray:
    """
    Build the fixed-effect design matrix; interaction terms are column products.

    Args:
        frame: Rows to encode
        terms: Terms in coefficient order

    Returns:
        Float array of shape (rows, terms)
    """
    columns = []
    for term in terms:
        values = np.ones(len(frame))
        for part in split_term(term):
            values = values * pd.to_numeric(frame[part], errors="coerce").to_numpy(dtype=float)
        columns.append(values)
    return np.column_stack(columns) if columns else np.empty((len(frame), 0))


def factor_levels(column: pd.Series) -> List[str]:
    """Observed levels of a grouping factor, in category order when categorical."""
    observed = column.dropna()
    if isinstance(column.dtype, pd.CategoricalDtype):
        present = set(observed.astype(str))
        return [str(c) for c in column.cat.categories if str(c) in present]
    return sorted(observed.astype(str).unique().tolist())


def encode_levels(column: pd.Series, levels: Sequence[str]) -> np.ndarray:
    """
    Map factor values to level codes; values outside ``levels`` get -1.
    """
    lookup = {level: i for i, level in enumerate(levels)}
    return np.array([lookup.get(str(v), -1) if pd.notna(v) else -1 for v in column], dtype=int)


class ModelDataPreparation:
    """
    Builds ModelData for a spec from the shared prepared dataset.
    """

    def select_rows(self, dataset: Union[PreparedDataset, pd.DataFrame], spec: ModelSpec) -> pd.DataFrame:
        """
        Apply the spec's row filter and complete-case exclusion.

        Args:
            dataset: Shared prepared dataset
            spec: Model specification

        Returns:
            New DataFrame holding only the rows the model is fit on
        """
        frame = dataset.frame if isinstance(dataset, PreparedDataset) else dataset

        required = spec.required_columns()
        missing_cols = [col for col in required if col not in frame.columns]
        if missing_cols:
            raise DataIntegrityError(f"Model '{spec.name}' requires missing columns: {missing_cols}")

        if spec.row_filter is not None:
            mask = spec.row_filter(frame).fillna(False).astype(bool)
            windowed = frame.loc[mask]
        else:
            windowed = frame

        complete = windowed[required].notna().all(axis=1)
        selected = windowed.loc[complete].copy()

        n_filtered_out = len(frame) - len(windowed)
        n_incomplete = len(windowed) - len(selected)
        logger.info(
            f"Model '{spec.name}': {len(selected)} rows selected "
            f"({n_filtered_out} outside evaluation window, {n_incomplete} with missing values)"
        )
        if n_incomplete:
            counts = windowed[required].isna().sum()
            logger.debug(f"Missing values per column for '{spec.name}': {counts[counts > 0].to_dict()}")

        if selected.empty:
            raise EmptyDatasetError(
                f"No complete rows remain for model '{spec.name}'",
                details={"columns": required, "window_rows": len(windowed)}
            )
        selected.attrs["n_filtered_out"] = n_filtered_out
        selected.attrs["n_incomplete"] = n_incomplete
        return selected

    def prepare(self, dataset: Union[PreparedDataset, pd.DataFrame], spec: ModelSpec) -> ModelData:
        """
        Prepare the arrays for one model.

        Args:
            dataset: Shared prepared dataset
            spec: Model specification

        Returns:
            ModelData for the selected rows
        """
        selected = self.select_rows(dataset, spec)

        y = pd.to_numeric(selected[spec.response], errors="coerce").to_numpy(dtype=float)
        if not np.isin(y, (0.0, 1.0)).all():
            raise DataIntegrityError(f"Response '{spec.response}' of model '{spec.name}' must be coded 0/1")

        group_idx: Dict[str, np.ndarray] = {}
        group_levels: Dict[str, List[str]] = {}
        for factor in spec.group_factors:
            levels = factor_levels(selected[factor])
            group_levels[factor] = levels
            group_idx[factor] = encode_levels(selected[factor], levels)
            logger.debug(f"Grouping factor '{factor}' has {len(levels)} levels: {levels}")

        return ModelData(
            spec_name=spec.name,
            frame=selected,
            X=design_matrix(selected, spec.terms),
            y=y.astype(int),
            terms=list(spec.terms),
            group_idx=group_idx,
            group_levels=group_levels,
            n_filtered_out=selected.attrs.get("n_filtered_out", 0),
            n_incomplete=selected.attrs.get("n_incomplete", 0),
        )
