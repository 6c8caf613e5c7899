"""
Bayesian model sampling component.

This module provides the MCMC configuration and runs NUTS on the PyMC model
of a ModelSpec. After sampling, divergent transitions and split-Rhat are
checked; a fit that fails either check raises an error that still carries the
completed draws so the caller can report on them.
"""

import os
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional

import pymc as pm

from glof_risk.utils.logging_utils import logger, log_step
from glof_risk.model.exceptions import (
    ConfigurationError, SamplingError, SamplingDivergenceError, SamplingNonConvergenceError,
)
from glof_risk.model.constants import (
    DEFAULT_CHAINS, DEFAULT_WARMUP, DEFAULT_TOTAL_ITERS, DEFAULT_TARGET_ACCEPT,
    DEFAULT_RANDOM_SEED, DEFAULT_MAX_DIVERGENCES, RHAT_THRESHOLD,
)
from glof_risk.model.model_spec import ModelSpec
from glof_risk.model.data_preparation import ModelDataPreparation
from glof_risk.model.bayesian.model_builder import BayesianModelBuilder
from glof_risk.model.posterior import PosteriorDraws
from glof_risk.model.diagnostics import rhat, nonconverged
from glof_risk.data.data_preprocessor import PreparedDataset


@dataclass(frozen=True)
class MCMCConfig:
    """
    Sampler settings.

    Attributes:
        num_chains: Independent chains
        warmup_iters: Tuning iterations per chain, discarded
        total_iters_per_chain: Warmup plus kept draws per chain
        target_accept: NUTS target acceptance probability
        random_seed: Seed for reproducibility
        cores: Parallel chain processes; min(chains, cpu count) when None
        max_divergences: Divergent transitions tolerated across all chains
    """
    num_chains: int = DEFAULT_CHAINS
    warmup_iters: int = DEFAULT_WARMUP
    total_iters_per_chain: int = DEFAULT_TOTAL_ITERS
    target_accept: float = DEFAULT_TARGET_ACCEPT
    random_seed: Optional[int] = DEFAULT_RANDOM_SEED
    cores: Optional[int] = None
    max_divergences: int = DEFAULT_MAX_DIVERGENCES

    def __post_init__(self):
        if self.num_chains < 1:
            raise ConfigurationError(f"num_chains must be at least 1, got {self.num_chains}")
        if self.warmup_iters < 0:
            raise ConfigurationError(f"warmup_iters must be non-negative, got {self.warmup_iters}")
        if self.warmup_iters >= self.total_iters_per_chain:
            raise ConfigurationError(
                f"warmup_iters ({self.warmup_iters}) must be less than "
                f"total_iters_per_chain ({self.total_iters_per_chain})"
            )
        if not 0.0 < self.target_accept < 1.0:
            raise ConfigurationError(f"target_accept must be in (0, 1), got {self.target_accept}")
        if self.cores is not None and self.cores < 1:
            raise ConfigurationError(f"cores must be at least 1, got {self.cores}")
        if self.max_divergences < 0:
            raise ConfigurationError(f"max_divergences must be non-negative, got {self.max_divergences}")

    @property
    def draws_per_chain(self) -> int:
        return self.total_iters_per_chain - self.warmup_iters

    @property
    def effective_cores(self) -> int:
        if self.cores is not None:
            return self.cores
        return max(1, min(self.num_chains, os.cpu_count() or 1))

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "MCMCConfig":
        """Build a config from a mapping, ignoring unrelated keys."""
        known = {k: v for k, v in values.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class BayesianSampler:
    """
    Fits a ModelSpec with NUTS.

    This component is responsible for:
    - Preparing the model data and building the PyMC graph
    - Running the chains
    - Checking divergences and convergence of the result
    """

    def __init__(
        self,
        data_preparation: Optional[ModelDataPreparation] = None,
        model_builder: Optional[BayesianModelBuilder] = None,
        rhat_threshold: float = RHAT_THRESHOLD,
        progressbar: bool = False
    ):
        self.data_preparation = data_preparation or ModelDataPreparation()
        self.model_builder = model_builder or BayesianModelBuilder()
        self.rhat_threshold = rhat_threshold
        self.progressbar = progressbar

    def _run_nuts(self, model: pm.Model, mcmc_config: MCMCConfig) -> Any:
        logger.info(
            f"Starting MCMC sampling: chains={mcmc_config.num_chains}, "
            f"warmup={mcmc_config.warmup_iters}, draws={mcmc_config.draws_per_chain}, "
            f"target_accept={mcmc_config.target_accept}, cores={mcmc_config.effective_cores}"
        )
        try:
            with model:
                return pm.sample(
                    draws=mcmc_config.draws_per_chain,
                    tune=mcmc_config.warmup_iters,
                    chains=mcmc_config.num_chains,
                    cores=mcmc_config.effective_cores,
                    target_accept=mcmc_config.target_accept,
                    random_seed=mcmc_config.random_seed,
                    progressbar=self.progressbar,
                    idata_kwargs={"log_likelihood": True},
                    return_inferencedata=True,
                )
        except ValueError as e:
            raise SamplingError(f"Invalid parameter for MCMC sampling: {str(e)}") from e
        except FloatingPointError as e:
            raise SamplingError(f"Numerical failure during MCMC sampling: {str(e)}") from e
        except RuntimeError as e:
            raise SamplingError(f"Runtime error during MCMC sampling: {str(e)}") from e

    @log_step(
        "Running MCMC sampling",
        warning_exceptions=(SamplingDivergenceError, SamplingNonConvergenceError)
    )
    def fit(
        self,
        spec: ModelSpec,
        dataset: PreparedDataset,
        mcmc_config: Optional[MCMCConfig] = None
    ) -> PosteriorDraws:
        """
        Fit one model and check its chains.

        Args:
            spec: Model specification
            dataset: Shared prepared dataset
            mcmc_config: Sampler settings (defaults when omitted)

        Returns:
            PosteriorDraws of the fit

        Raises:
            DataIntegrityError: If the spec's columns are unavailable or no rows remain
            SamplingError: If the sampler fails
            SamplingDivergenceError: If divergences exceed the configured maximum
            SamplingNonConvergenceError: If any parameter's Rhat exceeds the threshold
        """
        mcmc_config = mcmc_config or MCMCConfig()
        model_data = self.data_preparation.prepare(dataset, spec)
        model = self.model_builder.build_model(spec, model_data)

        idata = self._run_nuts(model, mcmc_config)
        draws = PosteriorDraws(
            spec=spec, model_data=model_data, idata=idata, model=model, mcmc_config=mcmc_config
        )
        logger.info(
            f"Completed sampling of '{spec.name}': {draws.n_samples} draws "
            f"from {draws.n_chains} chains"
        )

        if draws.n_divergent > mcmc_config.max_divergences:
            raise SamplingDivergenceError(
                f"Model '{spec.name}' had {draws.n_divergent} divergent transitions",
                details={"divergences": draws.n_divergent, "allowed": mcmc_config.max_divergences},
                draws=draws,
            )

        rhat_map = rhat(draws)
        flagged = nonconverged(rhat_map, self.rhat_threshold)
        if flagged:
            raise SamplingNonConvergenceError(
                f"Model '{spec.name}' did not converge: {len(flagged)} parameters with Rhat > "
                f"{self.rhat_threshold}",
                details={name: rhat_map[name] for name in flagged},
                draws=draws,
            )
        return draws
