#!/usr/bin/env python3
"""
Derived predictor computation for the GLOF models.

Every step here takes a table or column and returns a new value; nothing is
modified in place. Standardization statistics and quantile cut points are
computed once over the full working set, before any model-specific row
filtering.

Quantile bucketing convention: cut points are the linear-interpolation
quantiles of the non-missing values, intervals are closed on the right
``(a, b]`` and the lowest interval is also closed on the left, so the global
minimum always lands in the first bucket. When ties make those cut points
collide, the cut points are taken as quantiles of the distinct values
instead; equal values then still share a bucket and every bucket is
non-empty as long as there are at least as many distinct values as buckets.

A predictor that cannot be standardized or bucketed over the working set
(all missing, or constant) is kept as an all-missing column with a warning,
so only the models that use it lose their rows.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Sequence, Union

import numpy as np
import pandas as pd

from glof_risk.utils.logging_utils import logger, log_step
from glof_risk.model.exceptions import ConfigurationError, DataIntegrityError
from glof_risk.model.constants import (
    AREA_1990_COL, AREA_2005_COL, AREA_2018_COL, CATCHMENT_AREA_COL,
    MIN_ELEVATION_COL, PRECIP_SUMMER_COL, PRECIP_ANNUAL_COL, GLOF_YEAR_COL,
    AREA_Z_COL, CATCHMENT_Z_COL,
    LOG_RATIO_2005_1990_COL, LOG_RATIO_2018_2005_COL, LOG_RATIO_2018_1990_COL,
    RATIO_2005_1990_Z_COL, RATIO_2018_2005_Z_COL, RATIO_2018_1990_Z_COL,
    GROWTH_FLAG_COL, GROWTH_THRESHOLD, PRECIP_FRACTION_COL,
    ELEVATION_QUINTILE_COL, PRECIP_QUARTILE_COL, GLOF_PERIOD_COL,
    ELEVATION_LABELS, PRECIP_FRACTION_LABELS,
    PERIOD_BEFORE, PERIOD_MID, PERIOD_LATE, PERIOD_NONE, PERIOD_LABELS,
    PERIOD_MID_START, PERIOD_LATE_START,
)

Transform = Callable[[np.ndarray], np.ndarray]


@dataclass(frozen=True)
class ScaleParams:
    """Mean and sample standard deviation used to standardize a column."""
    mean: float
    sd: float


def safe_log10(values: np.ndarray) -> np.ndarray:
    """log10 that yields NaN (not -inf or a warning) for non-positive input."""
    values = np.asarray(values, dtype=float)
    out = np.full(values.shape, np.nan)
    positive = values > 0
    out[positive] = np.log10(values[positive])
    return out


def _apply_transform(column: pd.Series, transform: Optional[Transform]) -> pd.Series:
    values = pd.to_numeric(column, errors="coerce").to_numpy(dtype=float)
    if transform is not None:
        with np.errstate(divide="ignore", invalid="ignore"):
            values = np.asarray(transform(values), dtype=float)
    values = np.where(np.isfinite(values), values, np.nan)
    return pd.Series(values, index=column.index, name=column.name)


def fit_scale(column: pd.Series, transform: Optional[Transform] = None) -> ScaleParams:
    """
    Compute standardization parameters of the transformed column.

    Args:
        column: Numeric column
        transform: Optional transform applied before computing statistics

    Returns:
        ScaleParams with the sample mean and sample sd (ddof=1)

    Raises:
        DataIntegrityError: If fewer than two finite values remain or sd is zero
    """
    transformed = _apply_transform(column, transform).dropna()
    if len(transformed) < 2:
        raise DataIntegrityError(f"Cannot standardize '{column.name}': fewer than two finite values")
    sd = float(transformed.std(ddof=1))
    if sd == 0:
        raise DataIntegrityError(f"Cannot standardize '{column.name}': zero variance")
    return ScaleParams(mean=float(transformed.mean()), sd=sd)


def standardize(
    column: pd.Series,
    transform: Optional[Transform] = None,
    params: Optional[ScaleParams] = None
) -> pd.Series:
    """
    Apply ``transform`` then z-score standardize.

    Args:
        column: Numeric column
        transform: Optional transform (e.g. safe_log10)
        params: Existing parameters to apply; fitted on ``column`` when omitted

    Returns:
        Standardized column, NaN wherever the input was missing or the
        transform undefined
    """
    params = params or fit_scale(column, transform)
    transformed = _apply_transform(column, transform)
    return (transformed - params.mean) / params.sd


def ratio_change(area_t1: pd.Series, area_t0: pd.Series) -> pd.Series:
    """
    log10(area_t1 / area_t0), NaN when either area is missing or non-positive.
    """
    a1 = pd.to_numeric(area_t1, errors="coerce").to_numpy(dtype=float)
    a0 = pd.to_numeric(area_t0, errors="coerce").to_numpy(dtype=float)
    result = safe_log10(a1) - safe_log10(a0)
    index = area_t1.index if isinstance(area_t1, pd.Series) else None
    return pd.Series(result, index=index)


def growth_flag(log_ratio: pd.Series, threshold: float = GROWTH_THRESHOLD) -> pd.Series:
    """
    1 where the lake grew or shrank beyond ``threshold`` in log10 space, else 0.

    Missing ratios stay missing.
    """
    values = pd.to_numeric(log_ratio, errors="coerce")
    flag = (values.abs() > threshold).astype(float)
    return flag.where(values.notna())


def bucket_by_quantile(
    column: pd.Series,
    n_buckets: int,
    labels: Sequence[str]
) -> pd.Series:
    """
    Assign each value to a quantile bucket, labelled in ascending order.

    Args:
        column: Numeric column
        n_buckets: Number of buckets
        labels: Ordered labels, one per bucket

    Returns:
        Ordered categorical Series; missing input stays missing

    Raises:
        ConfigurationError: If the number of labels differs from n_buckets
        DataIntegrityError: If there are no observed values, or fewer distinct
            values than buckets
    """
    labels = list(labels)
    if n_buckets < 1 or len(labels) != n_buckets:
        raise ConfigurationError(
            f"Quantile bucketing of '{column.name}' needs {n_buckets} labels, got {len(labels)}"
        )

    values = pd.to_numeric(column, errors="coerce")
    observed = values.dropna().to_numpy(dtype=float)
    if observed.size == 0:
        raise DataIntegrityError(f"Cannot bucket '{column.name}': no observed values")

    probs = np.linspace(0.0, 1.0, n_buckets + 1)
    edges = np.quantile(observed, probs)
    if np.any(np.diff(edges) <= 0):
        distinct = np.unique(observed)
        if distinct.size < n_buckets:
            raise DataIntegrityError(
                f"Cannot bucket '{column.name}' into {n_buckets} quantiles: "
                f"only {distinct.size} distinct values",
                details=edges.tolist()
            )
        tied_edges = edges
        edges = np.quantile(distinct, probs)
        logger.warning(
            f"Tied quantile cut points for '{column.name}' {tied_edges.tolist()}; "
            f"using quantiles of the {distinct.size} distinct values {edges.tolist()}"
        )

    buckets = pd.cut(values, bins=edges, labels=labels, right=True, include_lowest=True, ordered=True)
    return pd.Series(buckets, index=column.index, name=column.name)


def temporal_bucket(glof_year) -> str:
    """Bucket a single GLOF year; missing means no recorded GLOF."""
    if glof_year is None or pd.isna(glof_year):
        return PERIOD_NONE
    if glof_year < PERIOD_MID_START:
        return PERIOD_BEFORE
    if glof_year < PERIOD_LATE_START:
        return PERIOD_MID
    return PERIOD_LATE


def assign_temporal_bucket(glof_year: pd.Series) -> pd.Series:
    """Bucket a column of GLOF years into BEFORE / MID / LATE / NONE."""
    years = pd.to_numeric(glof_year, errors="coerce")
    periods = [temporal_bucket(y) for y in years]
    return pd.Series(
        pd.Categorical(periods, categories=list(PERIOD_LABELS)),
        index=glof_year.index,
        name=GLOF_PERIOD_COL,
    )


@dataclass(frozen=True)
class PreparedDataset:
    """
    Frozen result of predictor derivation.

    ``frame`` is shared read-only by every model; model code selects rows
    into new frames and never writes to it.
    """
    frame: pd.DataFrame
    scaling: Dict[str, ScaleParams] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.frame)

    @property
    def columns(self):
        return self.frame.columns


class DataPreprocessor:
    """
    Derives the standardized, ratio, flag and bucket predictors.

    Parameters
    ----------
    growth_threshold : float
        Threshold on |log10 area ratio| for the growth flag.
    elevation_labels : sequence of str
        Labels of the elevation quintiles, lowest first.
    precip_labels : sequence of str
        Labels of the precipitation-fraction quartiles, lowest first.
    """

    def __init__(
        self,
        growth_threshold: float = GROWTH_THRESHOLD,
        elevation_labels: Sequence[str] = ELEVATION_LABELS,
        precip_labels: Sequence[str] = PRECIP_FRACTION_LABELS
    ):
        self.growth_threshold = growth_threshold
        self.elevation_labels = tuple(elevation_labels)
        self.precip_labels = tuple(precip_labels)

    @staticmethod
    def _check_columns(data: pd.DataFrame) -> None:
        required = [AREA_1990_COL, AREA_2005_COL, AREA_2018_COL, CATCHMENT_AREA_COL,
                    MIN_ELEVATION_COL, PRECIP_SUMMER_COL, PRECIP_ANNUAL_COL, GLOF_YEAR_COL]
        missing = [c for c in required if c not in data.columns]
        if missing:
            raise DataIntegrityError(f"Missing required columns: {missing}")

    @log_step("Deriving lake predictors")
    def prepare(self, data: Union[pd.DataFrame, PreparedDataset]) -> PreparedDataset:
        """
        Derive every model predictor over the full working set.

        Args:
            data: Merged lake table

        Returns:
            PreparedDataset with a new frame and the scaling parameters used
        """
        if isinstance(data, PreparedDataset):
            data = data.frame
        if data is None or len(data) == 0:
            raise DataIntegrityError("Input lake table is empty")
        self._check_columns(data)

        frame = data.copy()
        scaling: Dict[str, ScaleParams] = {}

        def add_standardized(target: str, source: pd.Series, transform: Optional[Transform]) -> None:
            try:
                params = fit_scale(source, transform)
            except DataIntegrityError as e:
                logger.warning(f"{str(e)}; '{target}' left missing for every lake")
                frame[target] = np.nan
                scaling[target] = ScaleParams(mean=np.nan, sd=np.nan)
                return
            frame[target] = standardize(source, transform, params)
            scaling[target] = params

        def add_buckets(target: str, source: pd.Series, labels: Sequence[str]) -> None:
            try:
                frame[target] = bucket_by_quantile(source, len(labels), labels)
            except DataIntegrityError as e:
                logger.warning(f"{str(e)}; '{target}' left missing for every lake")
                frame[target] = pd.Categorical([np.nan] * len(frame), categories=list(labels), ordered=True)

        add_standardized(AREA_Z_COL, frame[AREA_2018_COL], safe_log10)
        add_standardized(CATCHMENT_Z_COL, frame[CATCHMENT_AREA_COL], safe_log10)

        frame[LOG_RATIO_2005_1990_COL] = ratio_change(frame[AREA_2005_COL], frame[AREA_1990_COL])
        frame[LOG_RATIO_2018_2005_COL] = ratio_change(frame[AREA_2018_COL], frame[AREA_2005_COL])
        frame[LOG_RATIO_2018_1990_COL] = ratio_change(frame[AREA_2018_COL], frame[AREA_1990_COL])

        add_standardized(RATIO_2005_1990_Z_COL, frame[LOG_RATIO_2005_1990_COL], None)
        add_standardized(RATIO_2018_2005_Z_COL, frame[LOG_RATIO_2018_2005_COL], None)
        add_standardized(RATIO_2018_1990_Z_COL, frame[LOG_RATIO_2018_1990_COL], None)

        frame[GROWTH_FLAG_COL] = growth_flag(frame[LOG_RATIO_2018_1990_COL], self.growth_threshold)

        summer = pd.to_numeric(frame[PRECIP_SUMMER_COL], errors="coerce")
        annual = pd.to_numeric(frame[PRECIP_ANNUAL_COL], errors="coerce")
        frame[PRECIP_FRACTION_COL] = (summer / annual.where(annual > 0)).astype(float)

        add_buckets(ELEVATION_QUINTILE_COL, frame[MIN_ELEVATION_COL], self.elevation_labels)
        add_buckets(PRECIP_QUARTILE_COL, frame[PRECIP_FRACTION_COL], self.precip_labels)
        frame[GLOF_PERIOD_COL] = assign_temporal_bucket(frame[GLOF_YEAR_COL])

        for name, params in scaling.items():
            logger.debug(f"Scaling for {name}: mean={params.mean:.4f}, sd={params.sd:.4f}")
        logger.info(
            f"Derived predictors for {len(frame)} lakes; GLOF periods: "
            f"{frame[GLOF_PERIOD_COL].value_counts().to_dict()}"
        )
        return PreparedDataset(frame=frame, scaling=scaling)
