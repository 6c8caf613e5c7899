"""
Posterior draws of a fitted GLOF model.

PosteriorDraws wraps the ArviZ InferenceData of one fit together with the
spec and data it came from. Parameters are always addressed by name
(``Intercept``, ``b_<term>``, ``sd_<factor>``, ``r_<factor>``), never by
position.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

import numpy as np
import arviz as az

from glof_risk.model.exceptions import ModelEvaluationError
from glof_risk.model.model_spec import ModelSpec
from glof_risk.model.data_preparation import ModelData
from glof_risk.model.bayesian.model_builder import (
    fixed_effect_name, group_sd_name, group_offset_name,
)


@dataclass(frozen=True)
class PosteriorDraws:
    """
    Immutable result of sampling one model.

    Attributes:
        spec: Specification that was fit
        model_data: Arrays the model was fit on
        idata: InferenceData with posterior, sample_stats and log_likelihood groups
        model: PyMC model, needed for posterior predictive simulation
        mcmc_config: Sampler settings used
    """
    spec: ModelSpec
    model_data: ModelData
    idata: az.InferenceData
    model: Any = field(default=None, compare=False, repr=False)
    mcmc_config: Any = None

    @property
    def fixed_effect_names(self) -> List[str]:
        return ["Intercept"] + [fixed_effect_name(t) for t in self.spec.terms]

    @property
    def parameter_names(self) -> List[str]:
        """Every sampled parameter reported to users, in a stable order."""
        names = list(self.fixed_effect_names)
        names += [group_sd_name(f) for f in self.spec.group_factors]
        names += [group_offset_name(f) for f in self.spec.group_factors]
        return names

    def values(self, name: str) -> np.ndarray:
        """
        Draws of a parameter with shape (chain, draw, ...).

        Raises:
            ModelEvaluationError: If the parameter is not in the posterior
        """
        posterior = self.idata.posterior
        if name not in posterior:
            raise ModelEvaluationError(
                f"Parameter '{name}' not found in posterior of '{self.spec.name}'",
                details={"available": list(posterior.data_vars)}
            )
        return np.asarray(posterior[name].values)

    def stacked(self, name: str) -> np.ndarray:
        """Draws of a parameter with chains concatenated, shape (samples, ...)."""
        values = self.values(name)
        return values.reshape((-1,) + values.shape[2:])

    def group_offsets(self, factor: str) -> np.ndarray:
        """Offset draws of a grouping factor, shape (samples, levels)."""
        if factor not in self.spec.group_factors:
            raise ModelEvaluationError(f"Model '{self.spec.name}' has no grouping factor '{factor}'")
        return self.stacked(group_offset_name(factor))

    def levels(self, factor: str) -> List[str]:
        return list(self.model_data.group_levels[factor])

    @property
    def n_chains(self) -> int:
        return int(self.idata.posterior.sizes["chain"])

    @property
    def n_draws_per_chain(self) -> int:
        return int(self.idata.posterior.sizes["draw"])

    @property
    def n_samples(self) -> int:
        return self.n_chains * self.n_draws_per_chain

    @property
    def n_divergent(self) -> int:
        stats = getattr(self.idata, "sample_stats", None)
        if stats is None or "diverging" not in stats:
            return 0
        return int(np.asarray(stats["diverging"].values).sum())

    def fixed_effect_matrix(self, terms: Optional[List[str]] = None) -> np.ndarray:
        """Stacked fixed-effect draws of ``terms``, shape (samples, len(terms))."""
        terms = list(self.spec.terms) if terms is None else terms
        if not terms:
            return np.empty((self.n_samples, 0))
        return np.column_stack([self.stacked(fixed_effect_name(t)) for t in terms])
