#!/usr/bin/env python3
"""
Tests for the sampler configuration and model building.
"""
import unittest
import os
import sys
from unittest.mock import patch

import numpy as np

# Add the parent directory to sys.path so we can import glof_risk
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from posterior_fixtures import TOY_SPEC, make_draws, toy_model_data
from glof_risk.model.bayesian import BayesianModelBuilder
from glof_risk.model.sampling import BayesianSampler, MCMCConfig
from glof_risk.model.exceptions import (
    ConfigurationError, ModelBuildError, SamplingDivergenceError, SamplingNonConvergenceError,
)


class TestMCMCConfig(unittest.TestCase):
    """Tests for sampler settings."""

    def test_defaults(self):
        config = MCMCConfig()
        self.assertEqual(config.num_chains, 4)
        self.assertEqual(config.draws_per_chain, 1000)
        self.assertEqual(config.target_accept, 0.95)

    def test_invalid_settings_raise(self):
        with self.assertRaises(ConfigurationError):
            MCMCConfig(num_chains=0)
        with self.assertRaises(ConfigurationError):
            MCMCConfig(warmup_iters=1000, total_iters_per_chain=1000)
        with self.assertRaises(ConfigurationError):
            MCMCConfig(target_accept=1.0)
        with self.assertRaises(ConfigurationError):
            MCMCConfig(max_divergences=-1)

    def test_effective_cores_bounded_by_chains(self):
        self.assertEqual(MCMCConfig(num_chains=2, cores=1).effective_cores, 1)
        self.assertLessEqual(MCMCConfig(num_chains=2).effective_cores, 2)

    def test_dict_round_trip_ignores_unknown_keys(self):
        config = MCMCConfig(num_chains=2, warmup_iters=10, total_iters_per_chain=30)
        self.assertEqual(MCMCConfig.from_dict({**config.to_dict(), "extra": 1}), config)


class TestBayesianModelBuilder(unittest.TestCase):
    """Tests for the PyMC graph."""

    def test_parameter_names_and_coords(self):
        model = BayesianModelBuilder().build_model(TOY_SPEC, toy_model_data())
        names = set(model.named_vars)
        for name in ("Intercept", "b_x", "sd_group", "z_group", "r_group", "y"):
            self.assertIn(name, names)
        self.assertEqual(list(model.coords["group"]), ["g1", "g2"])
        self.assertEqual(len(model.coords["obs_id"]), 8)

    def test_invalid_level_codes_raise(self):
        model_data = toy_model_data()
        model_data.group_idx["group"] = np.full(8, -1)
        with self.assertRaises(ModelBuildError):
            BayesianModelBuilder().build_model(TOY_SPEC, model_data)


class TestBayesianSampler(unittest.TestCase):
    """Tests for post-sampling checks, with NUTS replaced by fixed draws."""

    def setUp(self):
        self.sampler = BayesianSampler(rhat_threshold=1.1)
        self.frame = toy_model_data().frame
        self.config = MCMCConfig(num_chains=4, warmup_iters=10, total_iters_per_chain=260)

    def test_fit_returns_draws(self):
        idata = make_draws(noise=0.2, seed=4).idata
        with patch.object(self.sampler, "_run_nuts", return_value=idata):
            draws = self.sampler.fit(TOY_SPEC, self.frame, self.config)
        self.assertEqual(draws.n_samples, 1000)
        self.assertIsNotNone(draws.model)
        self.assertEqual(draws.model_data.n_obs, 8)

    def test_divergences_raise_with_draws(self):
        idata = make_draws(noise=0.2, n_divergent=2, seed=4).idata
        with patch.object(self.sampler, "_run_nuts", return_value=idata):
            with self.assertRaises(SamplingDivergenceError) as ctx:
                self.sampler.fit(TOY_SPEC, self.frame, self.config)
        self.assertEqual(ctx.exception.draws.n_divergent, 2)

    def test_flagged_fit_logged_as_completed_with_warnings(self):
        idata = make_draws(noise=0.2, n_divergent=2, seed=4).idata
        with patch.object(self.sampler, "_run_nuts", return_value=idata), \
                patch("glof_risk.utils.logging_utils.get_logger") as mock_get_logger:
            with self.assertRaises(SamplingDivergenceError):
                self.sampler.fit(TOY_SPEC, self.frame, self.config)

        step_logger = mock_get_logger.return_value
        step_logger.error.assert_not_called()
        self.assertIn("completed with warnings", step_logger.info.call_args[0][0])

    def test_stuck_chains_raise_non_convergence(self):
        idata = make_draws(noise=0.2, seed=4).idata
        # Shift one chain of the slope far from the others
        values = idata.posterior["b_x"].values.copy()
        values[0] += 5.0
        idata.posterior["b_x"] = (("chain", "draw"), values)
        with patch.object(self.sampler, "_run_nuts", return_value=idata):
            with self.assertRaises(SamplingNonConvergenceError) as ctx:
                self.sampler.fit(TOY_SPEC, self.frame, self.config)
        self.assertIn("b_x", ctx.exception.details)
        self.assertIsNotNone(ctx.exception.draws)


if __name__ == "__main__":
    unittest.main()
