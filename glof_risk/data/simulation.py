"""
Synthetic Glacier Lake Data for Validation and Testing.

This module generates synthetic lake inventories with a known (planted)
relationship between lake size and GLOF occurrence, allowing the modeling
pipeline to be exercised end to end and checked against ground truth.

DATA GENERATION MODEL:
    logit P(GLOF) = intercept + area_effect * z(log10 area_2018) + region offset

ASSUMPTIONS:
- Lake areas are log-normally distributed and change multiplicatively between censuses
- GLOF years are uniform over 1975-2018 for lakes that burst
- Climate and mass-balance values vary by region
"""

from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.special import expit

from glof_risk.model.constants import (
    LAKE_ID_COL, REGION_COL, MIN_ELEVATION_COL, CATCHMENT_AREA_COL,
    AREA_1990_COL, AREA_2005_COL, AREA_2018_COL, GLOF_COL, GLOF_YEAR_COL,
    PRECIP_SUMMER_COL, PRECIP_ANNUAL_COL, MASS_BALANCE_COL,
    AREA_Z_COL, GROWTH_FLAG_COL, ELEVATION_QUINTILE_COL,
    LOG_RATIO_2018_1990_COL,
)

REGIONS: Tuple[str, ...] = (
    "Hindu Kush", "Karakoram", "Western Himalaya", "Central Himalaya", "Eastern Himalaya",
)
REGION_MASS_BALANCE: Dict[str, float] = {
    "Hindu Kush": -0.15, "Karakoram": -0.05, "Western Himalaya": -0.35,
    "Central Himalaya": -0.40, "Eastern Himalaya": -0.45,
}
REGION_SUMMER_FRACTION: Dict[str, float] = {
    "Hindu Kush": 0.35, "Karakoram": 0.30, "Western Himalaya": 0.55,
    "Central Himalaya": 0.75, "Eastern Himalaya": 0.80,
}

PRIMARY_COLUMNS = (
    LAKE_ID_COL, REGION_COL, MIN_ELEVATION_COL, CATCHMENT_AREA_COL,
    AREA_1990_COL, AREA_2005_COL, AREA_2018_COL, GLOF_COL, GLOF_YEAR_COL,
)
SECONDARY_COLUMNS = (LAKE_ID_COL, PRECIP_SUMMER_COL, PRECIP_ANNUAL_COL, MASS_BALANCE_COL)


def simulate_lakes(
    n_lakes: int = 300,
    intercept: float = -2.0,
    area_effect: float = 1.0,
    region_sd: float = 0.5,
    missing_1990_frac: float = 0.1,
    random_seed: Optional[int] = 42
) -> pd.DataFrame:
    """
    Generate a synthetic lake inventory in the canonical raw schema.

    Args:
        n_lakes: Number of lakes
        intercept: Planted population intercept on the logit scale
        area_effect: Planted effect of standardized log10 lake area
        region_sd: Standard deviation of the planted region offsets
        missing_1990_frac: Fraction of lakes without a 1990 area
        random_seed: Seed for reproducibility

    Returns:
        DataFrame with one row per lake
    """
    rng = np.random.default_rng(random_seed)

    region = rng.choice(REGIONS, size=n_lakes)
    region_offset = dict(zip(REGIONS, rng.normal(0.0, region_sd, size=len(REGIONS))))

    log_area_2018 = rng.normal(-1.3, 0.5, size=n_lakes)  # log10 km^2
    area_2018 = 10 ** log_area_2018
    area_2005 = area_2018 / 10 ** rng.normal(0.05, 0.08, size=n_lakes)
    area_1990 = area_2005 / 10 ** rng.normal(0.05, 0.08, size=n_lakes)
    area_1990[rng.random(n_lakes) < missing_1990_frac] = np.nan

    catchment_area = 10 ** (log_area_2018 + rng.normal(1.0, 0.4, size=n_lakes))
    min_elevation = rng.normal(4800.0, 450.0, size=n_lakes)

    annual = rng.gamma(shape=20.0, scale=50.0, size=n_lakes)
    fraction = np.clip(
        np.array([REGION_SUMMER_FRACTION[r] for r in region]) + rng.normal(0.0, 0.07, size=n_lakes),
        0.05, 0.95,
    )
    mass_balance = np.array([REGION_MASS_BALANCE[r] for r in region]) + rng.normal(0.0, 0.05, size=n_lakes)

    area_z = (log_area_2018 - log_area_2018.mean()) / log_area_2018.std(ddof=1)
    eta = intercept + area_effect * area_z + np.array([region_offset[r] for r in region])
    glof = rng.binomial(1, expit(eta))
    glof_year = np.where(glof == 1, rng.integers(1975, 2019, size=n_lakes), np.nan)

    return pd.DataFrame({
        LAKE_ID_COL: [f"G{85000 + i:06d}E{28000 + i:05d}N" for i in range(n_lakes)],
        REGION_COL: region,
        MIN_ELEVATION_COL: min_elevation,
        CATCHMENT_AREA_COL: catchment_area,
        AREA_1990_COL: area_1990,
        AREA_2005_COL: area_2005,
        AREA_2018_COL: area_2018,
        GLOF_COL: glof,
        GLOF_YEAR_COL: glof_year,
        PRECIP_SUMMER_COL: annual * fraction,
        PRECIP_ANNUAL_COL: annual,
        MASS_BALANCE_COL: mass_balance,
    })


def split_tables(lakes: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Split a simulated inventory into the lake table and the climate table."""
    return (
        lakes.loc[:, list(PRIMARY_COLUMNS)].copy(),
        lakes.loc[:, list(SECONDARY_COLUMNS)].copy(),
    )


def simulate_logistic_groups(
    n: int = 100,
    beta: float = 1.0,
    intercept: float = -0.5,
    group_effects: Sequence[float] = (-0.5, 0.5),
    random_seed: Optional[int] = None
) -> pd.DataFrame:
    """
    Simulate a planted one-predictor logistic relationship with known groups.

    Args:
        n: Number of rows
        beta: True fixed effect of ``x``
        intercept: True population intercept
        group_effects: True intercept offset of each group
        random_seed: Seed for reproducibility

    Returns:
        DataFrame with columns ``x``, ``group`` and binary ``y``
    """
    rng = np.random.default_rng(random_seed)
    labels = [f"g{i + 1}" for i in range(len(group_effects))]
    group_idx = rng.integers(0, len(group_effects), size=n)
    x = rng.normal(0.0, 1.0, size=n)
    eta = intercept + beta * x + np.asarray(group_effects)[group_idx]
    y = rng.binomial(1, expit(eta))
    return pd.DataFrame({
        "x": x,
        "group": pd.Categorical([labels[i] for i in group_idx], categories=labels),
        "y": y,
    })


def toy_lakes() -> pd.DataFrame:
    """
    Ten lakes with doubling areas, alternating GLOF flags and two elevation groups.

    Columns follow the derived schema used by the elevation-dependent warming
    model, so the frame can be fit directly.
    """
    from glof_risk.data.data_preprocessor import (
        standardize, ratio_change, growth_flag, safe_log10
    )

    n = 10
    area_1990 = pd.Series(2.0 ** np.arange(n), name=AREA_1990_COL)
    area_2018 = pd.Series(
        [a * (1.5 if i % 3 == 0 else 1.05) for i, a in enumerate(area_1990)],
        name=AREA_2018_COL,
    )
    log_ratio = ratio_change(area_2018, area_1990)

    return pd.DataFrame({
        LAKE_ID_COL: [f"toy_{i:02d}" for i in range(n)],
        AREA_1990_COL: area_1990,
        AREA_2018_COL: area_2018,
        GLOF_COL: [1, 0] * (n // 2),
        AREA_Z_COL: standardize(area_2018, safe_log10),
        LOG_RATIO_2018_1990_COL: log_ratio,
        GROWTH_FLAG_COL: growth_flag(log_ratio),
        ELEVATION_QUINTILE_COL: pd.Categorical(
            ["low"] * (n // 2) + ["high"] * (n // 2), categories=["low", "high"], ordered=True
        ),
    })
