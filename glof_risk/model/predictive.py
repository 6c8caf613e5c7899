"""
Predictive evaluation of fitted GLOF models.

Each lake gets the posterior mean of its GLOF probability. That probability
is compared with the base rate through a log-odds ratio:

    log_odds_ratio(p, b) = ln( (p / (1 - p)) / (b / (1 - b)) )

For lakes with a recorded GLOF the ratio is taken against the share of
positive outcomes; for lakes without one it is taken on the complementary
probability ``1 - p`` against the share of negative outcomes. A positive
ratio therefore means the model favours the observed outcome more than the
base rate does, and the true positive / true negative rates are the
percentages of finite ratios above zero.

EDGE CASES:
- p of exactly 0 or 1 yields an infinite ratio; such rows are excluded from
  the rates and counted separately
- Grouping levels unseen in the fitted data contribute no offset
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from scipy.special import expit

from glof_risk.utils.logging_utils import logger
from glof_risk.model.exceptions import ModelEvaluationError
from glof_risk.model.constants import LAKE_ID_COL
from glof_risk.model.posterior import PosteriorDraws
from glof_risk.model.data_preparation import design_matrix, encode_levels


def linear_predictor_draws(draws: PosteriorDraws, frame: Optional[pd.DataFrame] = None) -> np.ndarray:
    """
    Draws of the linear predictor for every row, shape (samples, rows).

    Args:
        draws: Posterior draws of a fit
        frame: Rows to predict; the fitted rows when omitted
    """
    spec = draws.spec
    if frame is None:
        X = draws.model_data.X
        codes = draws.model_data.group_idx
    else:
        missing = [c for c in spec.predictor_columns + list(spec.group_factors) if c not in frame.columns]
        if missing:
            raise ModelEvaluationError(f"Cannot predict with '{spec.name}': missing columns {missing}")
        X = design_matrix(frame, spec.terms)
        codes = {f: encode_levels(frame[f], draws.levels(f)) for f in spec.group_factors}

    eta = draws.stacked("Intercept")[:, None] + draws.fixed_effect_matrix() @ X.T
    for factor in spec.group_factors:
        offsets = draws.group_offsets(factor)
        idx = codes[factor]
        seen = idx >= 0
        contribution = np.zeros((offsets.shape[0], len(idx)))
        contribution[:, seen] = offsets[:, idx[seen]]
        eta = eta + contribution
    return eta


def posterior_mean_prediction(draws: PosteriorDraws, frame: Optional[pd.DataFrame] = None) -> np.ndarray:
    """Posterior mean GLOF probability of every row."""
    return expit(linear_predictor_draws(draws, frame)).mean(axis=0)


def log_odds_ratio(p, base_rate: float):
    """
    Log of the odds of ``p`` relative to the odds of ``base_rate``.

    Zero when p equals the base rate; -inf at p = 0 and +inf at p = 1.
    """
    if not 0.0 < base_rate < 1.0:
        raise ModelEvaluationError(f"Base rate must be in (0, 1), got {base_rate}")
    p = np.asarray(p, dtype=float)
    base_odds = base_rate / (1.0 - base_rate)
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.log(p / (1.0 - p)) - np.log(base_odds)


def _finite(values) -> np.ndarray:
    values = np.asarray(values, dtype=float)
    return values[np.isfinite(values)]


def true_positive_rate(log_odds) -> float:
    """Percentage of finite log-odds ratios of positive cases above zero."""
    finite = _finite(log_odds)
    return float(100.0 * np.mean(finite > 0)) if finite.size else float("nan")


def true_negative_rate(log_odds) -> float:
    """Percentage of finite log-odds ratios of negative cases above zero."""
    finite = _finite(log_odds)
    return float(100.0 * np.mean(finite > 0)) if finite.size else float("nan")


@dataclass
class PredictiveReport:
    """Calibration of one model's posterior mean predictions against the base rate."""
    model_name: str
    n_positive: int
    n_negative: int
    positive_base_rate: float
    negative_base_rate: float
    true_positive_rate: float
    true_negative_rate: float
    n_excluded_positive: int
    n_excluded_negative: int
    mean_log_odds_positive: float
    median_log_odds_positive: float
    mean_log_odds_negative: float
    median_log_odds_negative: float
    predictions: pd.DataFrame = field(repr=False, default_factory=pd.DataFrame)

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if k != "predictions"}


def _centre(values, fn) -> float:
    finite = _finite(values)
    return float(fn(finite)) if finite.size else float("nan")


class PredictiveEvaluator:
    """
    Scores posterior mean predictions against the empirical base rate.
    """

    def evaluate(self, draws: PosteriorDraws, frame: Optional[pd.DataFrame] = None) -> PredictiveReport:
        """
        Compute log-odds ratios and true positive / negative rates.

        Args:
            draws: Posterior draws of a fit
            frame: Rows to evaluate; the fitted rows when omitted

        Returns:
            PredictiveReport with summary rates and a per-row table

        Raises:
            ModelEvaluationError: If the rows contain only one outcome class
        """
        spec = draws.spec
        rows = draws.model_data.frame if frame is None else frame
        y = pd.to_numeric(rows[spec.response], errors="coerce").to_numpy(dtype=float)
        p = posterior_mean_prediction(draws, frame)

        positive = y == 1
        negative = y == 0
        if not positive.any() or not negative.any():
            raise ModelEvaluationError(
                f"Predictive evaluation of '{spec.name}' needs both outcomes; "
                f"got {int(positive.sum())} positive and {int(negative.sum())} negative rows"
            )

        base_rate = float(positive.sum() / (positive.sum() + negative.sum()))
        neg_base_rate = 1.0 - base_rate

        log_odds = np.full(len(y), np.nan)
        log_odds[positive] = log_odds_ratio(p[positive], base_rate)
        log_odds[negative] = log_odds_ratio(1.0 - p[negative], neg_base_rate)

        lo_pos = log_odds[positive]
        lo_neg = log_odds[negative]
        excluded_pos = int(np.sum(~np.isfinite(lo_pos)))
        excluded_neg = int(np.sum(~np.isfinite(lo_neg)))
        if excluded_pos or excluded_neg:
            logger.warning(
                f"{spec.name}: excluded {excluded_pos} positive and {excluded_neg} negative "
                f"rows with infinite log-odds"
            )

        predictions = pd.DataFrame({
            spec.response: y,
            "p_mean": p,
            "log_odds_ratio": log_odds,
        }, index=rows.index)
        if LAKE_ID_COL in rows.columns:
            predictions.insert(0, LAKE_ID_COL, rows[LAKE_ID_COL].to_numpy())

        report = PredictiveReport(
            model_name=spec.name,
            n_positive=int(positive.sum()),
            n_negative=int(negative.sum()),
            positive_base_rate=base_rate,
            negative_base_rate=neg_base_rate,
            true_positive_rate=true_positive_rate(lo_pos),
            true_negative_rate=true_negative_rate(lo_neg),
            n_excluded_positive=excluded_pos,
            n_excluded_negative=excluded_neg,
            mean_log_odds_positive=_centre(lo_pos, np.mean),
            median_log_odds_positive=_centre(lo_pos, np.median),
            mean_log_odds_negative=_centre(lo_neg, np.mean),
            median_log_odds_negative=_centre(lo_neg, np.median),
            predictions=predictions,
        )
        logger.info(
            f"Predictive evaluation of '{spec.name}': TPR = {report.true_positive_rate:.1f}%, "
            f"TNR = {report.true_negative_rate:.1f}%"
        )
        return report
