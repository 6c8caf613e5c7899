"""
Interval coverage check of the sampler on planted data.

Data with a known fixed effect is simulated repeatedly and fit with the
same hierarchical logistic machinery the GLOF models use; a well calibrated
fit places the true coefficient inside its 95% interval about 95 times in
100.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from glof_risk.utils.logging_utils import logger, log_step
from glof_risk.model.exceptions import SamplingDivergenceError, SamplingNonConvergenceError
from glof_risk.model.constants import CREDIBLE_INTERVAL
from glof_risk.model.model_spec import ModelSpec
from glof_risk.model.sampling import BayesianSampler, MCMCConfig
from glof_risk.model.summarizer import PosteriorSummarizer
from glof_risk.data.simulation import simulate_logistic_groups

COVERAGE_SPEC = ModelSpec(
    name="coverage",
    response="y",
    terms=("x",),
    group_factors=("group",),
    description="One planted predictor with a varying intercept over two groups",
)

COVERAGE_MCMC = MCMCConfig(num_chains=2, warmup_iters=500, total_iters_per_chain=1000)


@dataclass
class CoverageResult:
    """Outcome of repeated fits on planted data."""
    true_beta: float
    n_simulations: int
    n_covered: int
    n_flagged: int
    intervals: List[tuple] = field(default_factory=list, repr=False)

    @property
    def coverage(self) -> float:
        return self.n_covered / self.n_simulations if self.n_simulations else float("nan")


@log_step("Interval coverage check")
def coverage_check(
    n_simulations: int = 100,
    n: int = 100,
    beta: float = 1.0,
    intercept: float = -0.5,
    group_effects: Sequence[float] = (-0.5, 0.5),
    mcmc_config: Optional[MCMCConfig] = None,
    ci: float = CREDIBLE_INTERVAL,
    random_seed: int = 0
) -> CoverageResult:
    """
    Count how often the credible interval of the planted effect contains it.

    Fits that raise divergence or convergence errors still count; they are
    tallied in ``n_flagged``.

    Args:
        n_simulations: Number of simulated datasets
        n: Rows per dataset
        beta: True fixed effect
        intercept: True population intercept
        group_effects: True group offsets
        mcmc_config: Sampler settings (short chains when omitted)
        ci: Credible interval mass
        random_seed: Seed of the first dataset; dataset i uses random_seed + i

    Returns:
        CoverageResult
    """
    base_config = mcmc_config or COVERAGE_MCMC
    sampler = BayesianSampler()
    summarizer = PosteriorSummarizer(ci=ci)

    covered = 0
    flagged = 0
    intervals = []
    for i in range(n_simulations):
        data = simulate_logistic_groups(
            n=n, beta=beta, intercept=intercept, group_effects=group_effects, random_seed=random_seed + i
        )
        config = MCMCConfig.from_dict({**base_config.to_dict(), "random_seed": random_seed + i})
        try:
            draws = sampler.fit(COVERAGE_SPEC, data, config)
        except (SamplingDivergenceError, SamplingNonConvergenceError) as e:
            flagged += 1
            draws = e.draws

        row = summarizer.fixed_effects(draws).loc["x"]
        hit = bool(row["lower"] <= beta <= row["upper"])
        covered += hit
        intervals.append((float(row["lower"]), float(row["upper"])))
        logger.debug(f"Simulation {i}: interval [{row['lower']:.3f}, {row['upper']:.3f}] covered={hit}")

    result = CoverageResult(
        true_beta=beta, n_simulations=n_simulations, n_covered=covered,
        n_flagged=flagged, intervals=intervals,
    )
    logger.info(
        f"Coverage: {covered}/{n_simulations} intervals contain beta={beta} "
        f"({flagged} fits flagged)"
    )
    return result
