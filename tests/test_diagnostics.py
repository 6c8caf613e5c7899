#!/usr/bin/env python3
"""
Tests for convergence diagnostics and approximate LOO.
"""
import unittest
import os
import sys
import tempfile
from dataclasses import replace
from pathlib import Path
from unittest.mock import patch

import numpy as np
import arviz as az

# Add the parent directory to sys.path so we can import glof_risk
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from posterior_fixtures import make_draws
from glof_risk.model.diagnostics import (
    BayesianDiagnostics, rhat, nonconverged, rhat_frame, approximate_loo,
    posterior_predictive_check,
)
from glof_risk.model.exceptions import ModelEvaluationError


class TestRhat(unittest.TestCase):
    """Tests for split-Rhat."""

    def setUp(self):
        self.draws = make_draws(noise=0.2, n_chains=4, n_draws=500, seed=1)

    def test_every_parameter_element_reported(self):
        rhat_map = rhat(self.draws)
        self.assertEqual(
            set(rhat_map),
            {"Intercept", "b_x", "sd_group", "r_group[g1]", "r_group[g2]"},
        )
        for value in rhat_map.values():
            self.assertLess(value, 1.05)

    def test_nonconverged_flags_threshold_and_nan(self):
        flagged = nonconverged({"a": 1.0, "b": 1.2, "c": float("nan")}, threshold=1.01)
        self.assertEqual(flagged, ["b", "c"])

    def test_rhat_frame(self):
        frame = rhat_frame({"a": 1.0, "b": 1.2}, threshold=1.01)
        self.assertEqual(list(frame.index), ["a", "b"])
        self.assertEqual(list(frame["converged"]), [True, False])


class TestBayesianDiagnostics(unittest.TestCase):
    """Tests for the diagnostics component."""

    def test_compute_diagnostics_saves_summary(self):
        draws = make_draws(noise=0.2, n_divergent=3, seed=2)
        with tempfile.TemporaryDirectory() as tmp:
            diagnostics = BayesianDiagnostics(tmp).compute_diagnostics(draws)
            self.assertTrue((Path(tmp) / "diagnostics" / "summary.csv").exists())

        self.assertEqual(diagnostics["n_divergent"], 3)
        self.assertEqual(diagnostics["n_chains"], 4)
        self.assertEqual(diagnostics["n_draws_per_chain"], 250)
        self.assertEqual(diagnostics["n_parameters"], 5)
        self.assertFalse(diagnostics["converged"])
        self.assertGreater(diagnostics["ess_bulk_min"], 0)

    def test_plot_trace_without_directory_returns_none(self):
        self.assertIsNone(BayesianDiagnostics().plot_trace(make_draws(noise=0.2)))


class TestApproximateLoo(unittest.TestCase):
    """Tests for PSIS-LOO."""

    def test_loo_result(self):
        result = approximate_loo(make_draws(noise=0.2, seed=3))
        self.assertTrue(np.isfinite(result.elpd))
        self.assertLess(result.elpd, 0)
        self.assertEqual(result.pareto_k.size, 8)
        summary = result.to_dict()
        self.assertEqual(summary["n_high_k"], result.n_high_k)
        self.assertEqual(len(summary["warnings"]), 1 if result.n_high_k else 0)

    def test_high_pareto_k_produces_warning(self):
        result = approximate_loo(make_draws(noise=0.2, seed=3), k_threshold=-np.inf)
        self.assertEqual(result.n_high_k, 8)
        self.assertEqual(len(result.warnings), 1)
        self.assertIn("8 of 8 observations", result.warnings[0])
        self.assertEqual(result.to_dict()["warnings"], result.warnings)

    def test_missing_log_likelihood_raises(self):
        draws = make_draws(noise=0.2)
        idata = az.InferenceData(posterior=draws.idata.posterior, sample_stats=draws.idata.sample_stats)
        with self.assertRaises(ModelEvaluationError):
            approximate_loo(replace(draws, idata=idata))


class TestPosteriorPredictiveCheck(unittest.TestCase):
    """Tests for the posterior predictive check."""

    def test_requires_model(self):
        with self.assertRaises(ModelEvaluationError):
            posterior_predictive_check(make_draws())

    def test_counts_compared_with_simulated_positives(self):
        # 4 of the 8 toy lakes are positive; replicates have 2, 4, 5 and 6 positives
        simulated = np.zeros((1, 4, 8), dtype=int)
        for draw, count in enumerate([2, 4, 5, 6]):
            simulated[0, draw, :count] = 1
        predictive = az.from_dict(posterior_predictive={"y": simulated})
        draws = replace(make_draws(), model=object())

        with patch("glof_risk.model.diagnostics.pm.sample_posterior_predictive",
                   return_value=predictive) as mock_ppc:
            summary = posterior_predictive_check(draws, random_seed=5)

        self.assertEqual(mock_ppc.call_args.kwargs["var_names"], ["y"])
        self.assertEqual(summary.observed_count, 4)
        self.assertEqual(summary.n_obs, 8)
        self.assertAlmostEqual(summary.simulated_mean, 4.25)
        self.assertAlmostEqual(summary.p_value, 0.75)
        self.assertLessEqual(summary.simulated_lower, summary.simulated_upper)
        self.assertEqual(set(summary.to_dict()), {
            "observed_count", "simulated_mean", "simulated_sd", "simulated_lower",
            "simulated_upper", "p_value", "n_obs",
        })


if __name__ == "__main__":
    unittest.main()
