"""
Visualization module for the GLOF models.

This module plots group-level effects with their credible intervals, the
fixed effects of a model and the distribution of predictive log-odds ratios.
"""
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns

from glof_risk.utils.logging_utils import logger
from glof_risk.model.exceptions import VisualizationError
from glof_risk.model.constants import DEFAULT_FIGURE_SIZE, DEFAULT_DPI, POOLED_LEVEL, LAKE_ID_COL
from glof_risk.model.predictive import PredictiveReport


class BayesianVisualizer:
    """
    Visualization tools for fitted GLOF models.

    Responsibilities:
    - Forest plots of fixed and group-level effects
    - Histograms of predictive log-odds ratios
    """

    def __init__(self, results_dir: Optional[Union[str, Path]] = None):
        """
        Initialize the visualizer.

        Args:
            results_dir: Directory to save visualization outputs
        """
        self.results_dir = Path(results_dir) if results_dir is not None else None

        if self.results_dir is not None:
            self.viz_dir = self.results_dir / "visualizations"
            self.viz_dir.mkdir(parents=True, exist_ok=True)
        else:
            self.viz_dir = None

        sns.set_style("whitegrid")
        plt.rcParams["figure.figsize"] = DEFAULT_FIGURE_SIZE
        plt.rcParams["figure.dpi"] = DEFAULT_DPI

    def _save(self, fig: plt.Figure, filename: str) -> Optional[Path]:
        if self.viz_dir is None:
            plt.close(fig)
            logger.warning("No visualization directory specified")
            return None
        output_path = self.viz_dir / filename
        fig.savefig(output_path, dpi=300, bbox_inches="tight")
        plt.close(fig)
        logger.info(f"Saved plot to {output_path}")
        return output_path

    def plot_group_effects(
        self,
        group_df: pd.DataFrame,
        factor: str,
        model_name: str = "",
        filename: Optional[str] = None
    ) -> Optional[Path]:
        """
        Forest plot of the combined effect of each level, pooled row highlighted.

        Args:
            group_df: Output of PosteriorSummarizer.group_effects_with_pooled
            factor: Grouping factor name, used for labels
            model_name: Model name for the title
            filename: Output file name

        Returns:
            Path to the saved plot or None without a visualization directory
        """
        required = {"combined_mean", "combined_lower", "combined_upper"}
        if not required.issubset(group_df.columns):
            raise VisualizationError(f"Group effect table lacks columns {sorted(required)}")

        fig, ax = plt.subplots(figsize=(8, 0.6 * len(group_df) + 1.5))
        positions = np.arange(len(group_df))
        labels = [str(level) for level in group_df.index]
        colors = ["firebrick" if label == POOLED_LEVEL else "steelblue" for label in labels]

        ax.hlines(positions, group_df["combined_lower"], group_df["combined_upper"], colors=colors, linewidth=2)
        ax.scatter(group_df["combined_mean"], positions, color=colors, zorder=3)
        ax.set_yticks(positions)
        ax.set_yticklabels(labels)
        ax.set_xlabel("Log-odds of GLOF (intercept + level offset)")
        ax.set_ylabel(factor)
        ax.set_title(f"{model_name}: effects by {factor}".strip(": "))

        return self._save(fig, filename or f"group_effects_{factor}.png")

    def plot_fixed_effects(
        self,
        fixed_df: pd.DataFrame,
        model_name: str = "",
        filename: str = "fixed_effects.png"
    ) -> Optional[Path]:
        """Forest plot of the posterior fixed effects with a zero reference line."""
        fig, ax = plt.subplots(figsize=(8, 0.6 * len(fixed_df) + 1.5))
        positions = np.arange(len(fixed_df))

        ax.hlines(positions, fixed_df["lower"], fixed_df["upper"], color="steelblue", linewidth=2)
        ax.scatter(fixed_df["mean"], positions, color="steelblue", zorder=3)
        ax.axvline(0.0, color="grey", linestyle="--", alpha=0.7)
        ax.set_yticks(positions)
        ax.set_yticklabels([str(c) for c in fixed_df.index])
        ax.set_xlabel("Posterior estimate (log-odds)")
        ax.set_title(f"{model_name}: fixed effects".strip(": "))

        return self._save(fig, filename)

    def plot_log_odds(self, report: PredictiveReport, filename: str = "log_odds.png") -> Optional[Path]:
        """
        Histograms of finite log-odds ratios for lakes with and without a GLOF.
        """
        frame = report.predictions
        response = [c for c in frame.columns if c not in (LAKE_ID_COL, "p_mean", "log_odds_ratio")][0]
        finite = frame[np.isfinite(frame["log_odds_ratio"])]

        fig, axes = plt.subplots(1, 2, figsize=(12, 5), sharey=False)
        subsets = (
            (1, "GLOF lakes", report.true_positive_rate, "darkred"),
            (0, "Non-GLOF lakes", report.true_negative_rate, "darkblue"),
        )
        for ax, (outcome, title, rate, color) in zip(axes, subsets):
            values = finite.loc[finite[response] == outcome, "log_odds_ratio"]
            if len(values):
                sns.histplot(values, bins=30, color=color, ax=ax)
            ax.axvline(0.0, color="grey", linestyle="--", alpha=0.7)
            ax.set_title(f"{title} ({rate:.1f}% above base rate)")
            ax.set_xlabel("Log-odds ratio against base rate")
        fig.suptitle(report.model_name)
        fig.tight_layout()

        return self._save(fig, filename)
