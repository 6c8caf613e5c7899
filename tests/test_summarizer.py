#!/usr/bin/env python3
"""
Tests for posterior summaries.
"""
import unittest
import os
import sys

import numpy as np

# Add the parent directory to sys.path so we can import glof_risk
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from posterior_fixtures import make_draws
from glof_risk.model.summarizer import PosteriorSummarizer, describe_draws
from glof_risk.model.exceptions import ModelEvaluationError


class TestDescribeDraws(unittest.TestCase):
    """Tests for single-parameter summaries."""

    def test_equal_tailed_interval(self):
        values = np.arange(1001, dtype=float)
        summary = describe_draws(values, ci=0.9)
        self.assertAlmostEqual(summary["mean"], 500.0)
        self.assertAlmostEqual(summary["lower"], 50.0)
        self.assertAlmostEqual(summary["upper"], 950.0)

    def test_interval_contains_mean(self):
        values = np.random.default_rng(5).normal(2.0, 0.5, size=4000)
        summary = describe_draws(values)
        self.assertLess(summary["lower"], summary["mean"])
        self.assertLess(summary["mean"], summary["upper"])
        self.assertAlmostEqual(summary["sd"], np.std(values, ddof=1))


class TestPosteriorSummarizer(unittest.TestCase):
    """Tests for fixed and group effect tables."""

    def setUp(self):
        self.draws = make_draws(intercept=-0.5, beta=1.0, offsets=(-0.3, 0.3), noise=0.1)
        self.summarizer = PosteriorSummarizer()

    def test_fixed_effects_table(self):
        table = self.summarizer.fixed_effects(self.draws)
        self.assertEqual(list(table.index), ["Intercept", "x"])
        self.assertEqual(list(table.columns), ["mean", "sd", "lower", "upper"])
        self.assertAlmostEqual(table.loc["x", "mean"], self.draws.stacked("b_x").mean())
        self.assertTrue((table["lower"] < table["upper"]).all())

    def test_group_effects_combined_is_intercept_plus_offset(self):
        table = self.summarizer.group_effects(self.draws, "group")
        self.assertEqual(list(table.index), ["g1", "g2"])
        intercept = self.draws.stacked("Intercept")
        offsets = self.draws.group_offsets("group")
        for j, level in enumerate(["g1", "g2"]):
            self.assertAlmostEqual(table.loc[level, "mean"], offsets[:, j].mean())
            self.assertAlmostEqual(table.loc[level, "combined_mean"], (intercept + offsets[:, j]).mean())

    def test_pooled_row_sorted_by_combined_mean(self):
        table = self.summarizer.group_effects_with_pooled(self.draws, "group")
        self.assertEqual(list(table.index), ["g1", "pooled", "g2"])
        self.assertEqual(table.loc["pooled", "mean"], 0.0)
        self.assertAlmostEqual(table.loc["pooled", "combined_mean"], self.draws.stacked("Intercept").mean())
        self.assertTrue(table["combined_mean"].is_monotonic_increasing)

    def test_unknown_factor_raises(self):
        with self.assertRaises(ModelEvaluationError):
            self.summarizer.group_effects(self.draws, "region")


if __name__ == "__main__":
    unittest.main()
