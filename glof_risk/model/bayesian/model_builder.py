"""
Bayesian Model Builder for GLOF Risk Estimation.

This module creates the PyMC graph of a hierarchical logistic regression from
a ModelSpec and the prepared ModelData of that spec.

MODEL:
    logit P(glof) = Intercept + sum_t b_t * x_t + sum_f r_f[level_f]

Group intercepts use a non-centred parameterization:
r_f = sd_f * z_f with z_f ~ Normal(0, 1).
"""

from typing import Dict, Optional

import numpy as np
import pymc as pm

from glof_risk.utils.logging_utils import logger
from glof_risk.model.exceptions import ModelBuildError
from glof_risk.model.model_spec import ModelSpec
from glof_risk.model.data_preparation import ModelData


def fixed_effect_name(term: str) -> str:
    return f"b_{term}"


def group_sd_name(factor: str) -> str:
    return f"sd_{factor}"


def group_offset_name(factor: str) -> str:
    return f"r_{factor}"


def group_raw_name(factor: str) -> str:
    return f"z_{factor}"


class BayesianModelBuilder:
    """
    Builds PyMC model graphs for the GLOF logistic regressions.

    ASSUMPTIONS:
    - ModelData holds complete cases only
    - Every row has a valid level code for every grouping factor

    EDGE CASES:
    - A grouping factor with a single level still gets an sd and one offset
    - Empty data raises ModelBuildError

    Parameter names are fixed so that downstream code can address
    coefficients by name: ``Intercept``, ``b_<term>``, ``sd_<factor>`` and
    ``r_<factor>`` (indexed by the factor's levels).
    """

    def __init__(self):
        self._model: Optional[pm.Model] = None

    @staticmethod
    def coords(spec: ModelSpec, model_data: ModelData) -> Dict[str, list]:
        coords = {"obs_id": list(range(model_data.n_obs))}
        for factor in spec.group_factors:
            coords[factor] = list(model_data.group_levels[factor])
        return coords

    def build_model(self, spec: ModelSpec, model_data: ModelData) -> pm.Model:
        """
        Build the hierarchical logistic model of a spec.

        Args:
            spec: Model specification
            model_data: Arrays prepared for the spec

        Returns:
            PyMC model ready for sampling

        Raises:
            ModelBuildError: If the data does not match the spec or PyMC rejects the graph
        """
        if model_data.n_obs == 0:
            raise ModelBuildError(f"Cannot build model '{spec.name}' without observations")
        if model_data.X.shape[1] != len(spec.terms):
            raise ModelBuildError(
                f"Design matrix of '{spec.name}' has {model_data.X.shape[1]} columns "
                f"for {len(spec.terms)} terms"
            )
        for factor in spec.group_factors:
            codes = model_data.group_idx.get(factor)
            if codes is None or np.any(codes < 0):
                raise ModelBuildError(f"Invalid level codes for grouping factor '{factor}'")

        n_levels = {f: len(model_data.group_levels[f]) for f in spec.group_factors}
        logger.info(
            f"Building model '{spec.name}' with {model_data.n_obs} observations, "
            f"{len(spec.terms)} fixed effects and group levels {n_levels}"
        )

        try:
            with pm.Model(coords=self.coords(spec, model_data)) as model:
                intercept = spec.prior_for("Intercept").to_pymc(pm, "Intercept")
                eta = intercept

                for j, term in enumerate(spec.terms):
                    coef = spec.prior_for("b", term).to_pymc(pm, fixed_effect_name(term))
                    eta = eta + coef * model_data.X[:, j]

                for factor in spec.group_factors:
                    sd = spec.prior_for("sd", factor).to_pymc(pm, group_sd_name(factor))
                    z = pm.Normal(group_raw_name(factor), mu=0.0, sigma=1.0, dims=factor)
                    offset = pm.Deterministic(group_offset_name(factor), sd * z, dims=factor)
                    eta = eta + offset[model_data.group_idx[factor]]

                pm.Bernoulli(spec.response, logit_p=eta, observed=model_data.y, dims="obs_id")
        except (ValueError, TypeError) as e:
            raise ModelBuildError(f"Error building model '{spec.name}': {str(e)}") from e

        logger.info(f"Successfully built model '{spec.name}'")
        self._model = model
        return model

    def get_model(self) -> Optional[pm.Model]:
        """
        Get the most recently built model.

        Returns:
            PyMC model or None if not built
        """
        return self._model
