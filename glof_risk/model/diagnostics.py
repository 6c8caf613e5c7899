"""
Diagnostics module for the GLOF models.

This module provides convergence diagnostics (split-Rhat, effective sample
size, divergences), a posterior predictive check on the count of positive
outcomes and approximate leave-one-out cross-validation (PSIS-LOO).
"""
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import pymc as pm
import arviz as az

from glof_risk.utils.logging_utils import logger
from glof_risk.model.exceptions import ModelEvaluationError, VisualizationError
from glof_risk.model.constants import RHAT_THRESHOLD, PARETO_K_THRESHOLD, CREDIBLE_INTERVAL
from glof_risk.model.posterior import PosteriorDraws


def _flatten(dataset: Any, names: List[str]) -> Dict[str, float]:
    """One entry per scalar element, e.g. ``r_region[Karakoram]``."""
    flat: Dict[str, float] = {}
    for name in names:
        array = dataset[name]
        values = np.asarray(array.values, dtype=float)
        if values.ndim == 0:
            flat[name] = float(values)
            continue
        for idx in np.ndindex(values.shape):
            label = ",".join(
                str(array.coords[dim].values[i]) if dim in array.coords else str(i)
                for dim, i in zip(array.dims, idx)
            )
            flat[f"{name}[{label}]"] = float(values[idx])
    return flat


def rhat(draws: PosteriorDraws) -> Dict[str, float]:
    """
    Split-Rhat of every reported parameter element.

    Args:
        draws: Posterior draws of a fit

    Returns:
        Mapping from parameter element name to its Rhat
    """
    names = draws.parameter_names
    try:
        result = az.rhat(draws.idata, var_names=names, method="split")
    except (KeyError, ValueError) as e:
        raise ModelEvaluationError(f"Rhat computation failed for '{draws.spec.name}': {str(e)}") from e
    return _flatten(result, names)


def nonconverged(rhat_map: Dict[str, float], threshold: float = RHAT_THRESHOLD) -> List[str]:
    """Names whose Rhat exceeds ``threshold`` or could not be computed."""
    return [name for name, value in rhat_map.items() if not np.isfinite(value) or value > threshold]


@dataclass
class PPCSummary:
    """Observed count of positive outcomes against its posterior predictive distribution."""
    observed_count: int
    simulated_mean: float
    simulated_sd: float
    simulated_lower: float
    simulated_upper: float
    p_value: float
    n_obs: int

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


def posterior_predictive_check(
    draws: PosteriorDraws,
    random_seed: Optional[int] = None,
    ci: float = CREDIBLE_INTERVAL
) -> PPCSummary:
    """
    Simulate replicated responses and compare the count of positives.

    The p-value is the share of replicates with at least as many positives as
    observed. No pass/fail verdict is attached.

    Raises:
        ModelEvaluationError: If no PyMC model is attached or simulation fails
    """
    if draws.model is None:
        raise ModelEvaluationError(f"No PyMC model attached to draws of '{draws.spec.name}'")

    response = draws.spec.response
    try:
        predictive = pm.sample_posterior_predictive(
            draws.idata,
            model=draws.model,
            var_names=[response],
            random_seed=random_seed,
            progressbar=False,
            extend_inferencedata=False,
        )
    except (ValueError, RuntimeError) as e:
        raise ModelEvaluationError(f"Posterior predictive simulation failed: {str(e)}") from e

    simulated = np.asarray(predictive.posterior_predictive[response].values)
    counts = simulated.reshape(-1, simulated.shape[-1]).sum(axis=1)
    observed = int(np.sum(draws.model_data.y))
    alpha = (1.0 - ci) / 2.0

    summary = PPCSummary(
        observed_count=observed,
        simulated_mean=float(np.mean(counts)),
        simulated_sd=float(np.std(counts, ddof=1)) if len(counts) > 1 else 0.0,
        simulated_lower=float(np.quantile(counts, alpha)),
        simulated_upper=float(np.quantile(counts, 1.0 - alpha)),
        p_value=float(np.mean(counts >= observed)),
        n_obs=draws.model_data.n_obs,
    )
    logger.info(
        f"PPC for '{draws.spec.name}': observed {observed} positives, simulated "
        f"{summary.simulated_mean:.1f} [{summary.simulated_lower:.0f}, {summary.simulated_upper:.0f}], "
        f"p = {summary.p_value:.3f}"
    )
    return summary


@dataclass
class LooResult:
    """PSIS-LOO estimate of expected log predictive density."""
    elpd: float
    se: float
    p_loo: float
    pareto_k: np.ndarray = field(repr=False)
    n_high_k: int = 0
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "elpd_loo": self.elpd,
            "se": self.se,
            "p_loo": self.p_loo,
            "max_pareto_k": float(np.max(self.pareto_k)) if self.pareto_k.size else None,
            "n_high_k": self.n_high_k,
            "warnings": list(self.warnings),
        }


def approximate_loo(draws: PosteriorDraws, k_threshold: float = PARETO_K_THRESHOLD) -> LooResult:
    """
    Approximate leave-one-out cross-validation with Pareto-smoothed importance sampling.

    Observations whose Pareto k exceeds ``k_threshold`` make the estimate
    unreliable; they are reported as warnings, not errors.

    Raises:
        ModelEvaluationError: If the pointwise log-likelihood is unavailable
    """
    if "log_likelihood" not in draws.idata.groups():
        raise ModelEvaluationError(f"No pointwise log-likelihood stored for '{draws.spec.name}'")

    with warnings.catch_warnings():
        # High Pareto k values are reported below
        warnings.simplefilter("ignore", UserWarning)
        try:
            loo = az.loo(draws.idata, pointwise=True, var_name=draws.spec.response)
        except (KeyError, TypeError, ValueError) as e:
            raise ModelEvaluationError(f"LOO computation failed for '{draws.spec.name}': {str(e)}") from e

    pareto_k = np.asarray(loo.pareto_k).ravel()
    high = np.flatnonzero(pareto_k > k_threshold)
    messages: List[str] = []
    if high.size:
        messages.append(
            f"{high.size} of {pareto_k.size} observations have Pareto k > {k_threshold}; "
            f"LOO estimate may be unreliable"
        )
        for message in messages:
            logger.warning(f"{draws.spec.name}: {message}")

    result = LooResult(
        elpd=float(loo.elpd_loo),
        se=float(loo.se),
        p_loo=float(loo.p_loo),
        pareto_k=pareto_k,
        n_high_k=int(high.size),
        warnings=messages,
    )
    logger.info(f"LOO for '{draws.spec.name}': elpd = {result.elpd:.2f} (se {result.se:.2f})")
    return result


class BayesianDiagnostics:
    """
    Provides diagnostics for fitted GLOF models.

    Responsibilities:
    - Computing convergence diagnostics
    - Producing diagnostic plots
    """

    def __init__(self, results_dir: Optional[Union[str, Path]] = None):
        """
        Initialize the diagnostics component.

        Args:
            results_dir: Directory to save diagnostic tables and plots
        """
        self.results_dir = Path(results_dir) if results_dir is not None else None
        if self.results_dir is not None:
            self.diagnostics_dir = self.results_dir / "diagnostics"
            self.diagnostics_dir.mkdir(parents=True, exist_ok=True)
        else:
            self.diagnostics_dir = None

    def compute_diagnostics(
        self,
        draws: PosteriorDraws,
        rhat_threshold: float = RHAT_THRESHOLD
    ) -> Dict[str, Any]:
        """
        Compute diagnostic metrics for a fit.

        Args:
            draws: Posterior draws

        Returns:
            Dictionary of diagnostic metrics
        """
        try:
            summary = az.summary(draws.idata, var_names=draws.parameter_names, round_to="none")
        except (KeyError, ValueError) as e:
            raise ModelEvaluationError(f"Diagnostic computation failed: {str(e)}") from e

        rhat_map = rhat(draws)
        rhat_values = np.array(list(rhat_map.values()), dtype=float)
        flagged = nonconverged(rhat_map, rhat_threshold)

        diagnostics = {
            "n_parameters": len(rhat_map),
            "rhat_max": float(np.nanmax(rhat_values)),
            "rhat_mean": float(np.nanmean(rhat_values)),
            "ess_bulk_min": float(summary["ess_bulk"].min()),
            "ess_tail_min": float(summary["ess_tail"].min()),
            "n_divergent": draws.n_divergent,
            "n_chains": draws.n_chains,
            "n_draws_per_chain": draws.n_draws_per_chain,
            "nonconverged": flagged,
            "converged": bool(not flagged and draws.n_divergent == 0),
        }

        logger.info(
            f"Diagnostics for '{draws.spec.name}': max Rhat = {diagnostics['rhat_max']:.3f}, "
            f"min ESS = {diagnostics['ess_bulk_min']:.1f}, n_divergent = {diagnostics['n_divergent']}"
        )

        if self.diagnostics_dir is not None:
            summary_path = self.diagnostics_dir / "summary.csv"
            summary.to_csv(summary_path)
            logger.info(f"Saved summary table to {summary_path}")

        return diagnostics

    def plot_trace(
        self,
        draws: PosteriorDraws,
        variables: Optional[List[str]] = None,
        filename: str = "trace_plot.png"
    ) -> Optional[Path]:
        """
        Generate trace plots for model parameters.

        Args:
            draws: Posterior draws
            variables: Variables to plot (defaults to the fixed effects and group sds)
            filename: Name of the file to save the plot to

        Returns:
            Path to the saved plot or None without a diagnostics directory
        """
        if self.diagnostics_dir is None:
            logger.warning("No diagnostics directory specified")
            return None

        if variables is None:
            variables = [n for n in draws.parameter_names if not n.startswith("r_")]
        try:
            axes = az.plot_trace(draws.idata, var_names=variables, compact=True)
            fig = np.asarray(axes).ravel()[0].figure
            fig.tight_layout()
            output_path = self.diagnostics_dir / filename
            fig.savefig(output_path, dpi=150, bbox_inches="tight")
            plt.close(fig)
        except (KeyError, ValueError) as e:
            raise VisualizationError(f"Trace plotting failed: {str(e)}") from e

        logger.info(f"Saved trace plot to {output_path}")
        return output_path

    def plot_ppc(
        self,
        draws: PosteriorDraws,
        filename: str = "ppc_plot.png",
        random_seed: Optional[int] = None
    ) -> Optional[Path]:
        """
        Plot the posterior predictive distribution of the response.

        Returns:
            Path to the saved plot or None without a diagnostics directory
        """
        if self.diagnostics_dir is None:
            logger.warning("No diagnostics directory specified")
            return None
        if draws.model is None:
            raise VisualizationError(f"No PyMC model attached to draws of '{draws.spec.name}'")

        try:
            idata = draws.idata.copy()
            pm.sample_posterior_predictive(
                idata, model=draws.model, random_seed=random_seed,
                progressbar=False, extend_inferencedata=True,
            )
            ax = az.plot_ppc(idata, var_names=[draws.spec.response], kind="cumulative")
            fig = np.asarray(ax).ravel()[0].figure
            output_path = self.diagnostics_dir / filename
            fig.savefig(output_path, dpi=150, bbox_inches="tight")
            plt.close(fig)
        except (KeyError, ValueError, RuntimeError) as e:
            raise VisualizationError(f"PPC plotting failed: {str(e)}") from e

        logger.info(f"Saved PPC plot to {output_path}")
        return output_path


def rhat_frame(rhat_map: Dict[str, float], threshold: float = RHAT_THRESHOLD) -> pd.DataFrame:
    """Rhat table with a flag column, for saving."""
    frame = pd.DataFrame({"rhat": pd.Series(rhat_map, dtype=float)})
    frame.index.name = "parameter"
    frame["converged"] = frame["rhat"].le(threshold)
    return frame
