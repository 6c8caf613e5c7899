"""
Constants for the GLOF risk models.

This module centralizes the column names, prior parameters, thresholds and
default MCMC settings used throughout the codebase.
"""
from typing import Tuple

# =======================================================
# Canonical column names
# =======================================================

LAKE_ID_COL = "lake_id"
REGION_COL = "region"
MIN_ELEVATION_COL = "min_elevation"
CATCHMENT_AREA_COL = "catchment_area"
AREA_1990_COL = "area_1990"
AREA_2005_COL = "area_2005"
AREA_2018_COL = "area_2018"
GLOF_COL = "glof"
GLOF_YEAR_COL = "glof_year"
PRECIP_SUMMER_COL = "precip_summer"
PRECIP_ANNUAL_COL = "precip_annual"
MASS_BALANCE_COL = "mass_balance"

# Derived predictors
AREA_Z_COL = "area_z"
CATCHMENT_Z_COL = "catchment_z"
LOG_RATIO_2005_1990_COL = "log_ratio_2005_1990"
LOG_RATIO_2018_2005_COL = "log_ratio_2018_2005"
LOG_RATIO_2018_1990_COL = "log_ratio_2018_1990"
RATIO_2005_1990_Z_COL = "ratio_2005_1990_z"
RATIO_2018_2005_Z_COL = "ratio_2018_2005_z"
RATIO_2018_1990_Z_COL = "ratio_2018_1990_z"
GROWTH_FLAG_COL = "growth_1990_2018"
PRECIP_FRACTION_COL = "precip_fraction"
ELEVATION_QUINTILE_COL = "elevation_quintile"
PRECIP_QUARTILE_COL = "precip_quartile"
GLOF_PERIOD_COL = "glof_period"

# =======================================================
# Derived predictor settings
# =======================================================

GROWTH_THRESHOLD = 0.1  # |log10 area ratio| beyond which a lake grew or shrank

ELEVATION_LABELS: Tuple[str, ...] = ("lowest", "low", "middle", "high", "highest")
PRECIP_FRACTION_LABELS: Tuple[str, ...] = ("low", "mid_low", "mid_high", "high")

# Temporal buckets of the GLOF year
PERIOD_BEFORE = "BEFORE"
PERIOD_MID = "MID"
PERIOD_LATE = "LATE"
PERIOD_NONE = "NONE"
PERIOD_LABELS: Tuple[str, ...] = (PERIOD_BEFORE, PERIOD_MID, PERIOD_LATE, PERIOD_NONE)
PERIOD_MID_START = 1990
PERIOD_LATE_START = 2005

# =======================================================
# Prior distributions
# =======================================================

STUDENT_T_NU = 3.0
STUDENT_T_MU = 0.0
STUDENT_T_SIGMA = 2.5
AREA_PRIOR_MU = 1.0  # larger lakes expected to be riskier
AREA_PRIOR_SIGMA = 1.0
GROUP_SD_RATE = 1.0

# =======================================================
# Diagnostics thresholds
# =======================================================

RHAT_THRESHOLD = 1.01
PARETO_K_THRESHOLD = 0.7
CREDIBLE_INTERVAL = 0.95

# =======================================================
# MCMC sampling parameters
# =======================================================

DEFAULT_CHAINS = 4
DEFAULT_WARMUP = 1000
DEFAULT_TOTAL_ITERS = 2000
DEFAULT_TARGET_ACCEPT = 0.95
DEFAULT_RANDOM_SEED = 42
DEFAULT_MAX_DIVERGENCES = 0

# Pseudo-level holding the population intercept in group effect tables
POOLED_LEVEL = "pooled"

# Visualization parameters
DEFAULT_FIGURE_SIZE = (10, 6)
DEFAULT_DPI = 100
