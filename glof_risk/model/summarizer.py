"""
Posterior summaries of the fixed and group-level effects.

Intervals are equal-tailed: the ``(1 - ci) / 2`` and ``1 - (1 - ci) / 2``
quantiles of the draws. A group level's combined effect is the population
intercept plus that level's offset, computed draw by draw.
"""

from typing import Dict

import numpy as np
import pandas as pd

from glof_risk.model.constants import CREDIBLE_INTERVAL, POOLED_LEVEL
from glof_risk.model.posterior import PosteriorDraws


def describe_draws(values: np.ndarray, ci: float = CREDIBLE_INTERVAL) -> Dict[str, float]:
    """Mean, sd and equal-tailed interval of one-dimensional draws."""
    values = np.asarray(values, dtype=float).ravel()
    alpha = (1.0 - ci) / 2.0
    return {
        "mean": float(np.mean(values)),
        "sd": float(np.std(values, ddof=1)) if values.size > 1 else 0.0,
        "lower": float(np.quantile(values, alpha)),
        "upper": float(np.quantile(values, 1.0 - alpha)),
    }


class PosteriorSummarizer:
    """
    Tabulates posterior draws of a fitted model.

    Parameters
    ----------
    ci : float
        Mass of the equal-tailed credible interval.
    """

    def __init__(self, ci: float = CREDIBLE_INTERVAL):
        self.ci = ci

    def fixed_effects(self, draws: PosteriorDraws) -> pd.DataFrame:
        """
        Summarize the intercept and every fixed effect.

        Returns:
            DataFrame indexed by coefficient (``Intercept`` and each term)
            with columns mean, sd, lower, upper
        """
        rows = {"Intercept": describe_draws(draws.stacked("Intercept"), self.ci)}
        for term, name in zip(draws.spec.terms, draws.fixed_effect_names[1:]):
            rows[term] = describe_draws(draws.stacked(name), self.ci)
        frame = pd.DataFrame.from_dict(rows, orient="index")
        frame.index.name = "coefficient"
        return frame

    def group_effects(self, draws: PosteriorDraws, factor: str) -> pd.DataFrame:
        """
        Summarize the offset and combined effect of every level of a grouping factor.

        Returns:
            DataFrame indexed by level with offset columns (mean, sd, lower,
            upper) and combined columns (combined_mean, combined_sd,
            combined_lower, combined_upper)
        """
        offsets = draws.group_offsets(factor)
        intercept = draws.stacked("Intercept")
        rows = {}
        for j, level in enumerate(draws.levels(factor)):
            row = describe_draws(offsets[:, j], self.ci)
            combined = describe_draws(intercept + offsets[:, j], self.ci)
            row.update({f"combined_{k}": v for k, v in combined.items()})
            rows[level] = row
        frame = pd.DataFrame.from_dict(rows, orient="index")
        frame.index.name = factor
        return frame

    def group_effects_with_pooled(self, draws: PosteriorDraws, factor: str) -> pd.DataFrame:
        """
        Group effects plus a ``pooled`` row for the population intercept.

        The pooled row has a zero offset and the intercept as its combined
        effect. Rows are ordered by combined mean, lowest first.
        """
        frame = self.group_effects(draws, factor)
        pooled = {"mean": 0.0, "sd": 0.0, "lower": 0.0, "upper": 0.0}
        intercept = describe_draws(draws.stacked("Intercept"), self.ci)
        pooled.update({f"combined_{k}": v for k, v in intercept.items()})
        frame.loc[POOLED_LEVEL] = pd.Series(pooled)
        return frame.sort_values("combined_mean", kind="mergesort")
