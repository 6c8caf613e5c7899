#!/usr/bin/env python3
"""
Tests for the model specifications.
"""
import unittest
import os
import sys

import numpy as np
import pandas as pd

# Add the parent directory to sys.path so we can import glof_risk
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from glof_risk.model.model_spec import (
    ModelSpec, Prior, MODEL_SPECS, EDW_SPEC, FORECASTING_SPEC, MASS_BALANCE_SPEC,
    MONSOONALITY_SPEC, WEAK_PRIOR, AREA_PRIOR, GROUP_SD_PRIOR,
    get_model_spec, forecasting_window, split_term,
)
from glof_risk.model.exceptions import ConfigurationError


class TestModelSpecs(unittest.TestCase):
    """Tests for the four model declarations."""

    def test_four_models_registered(self):
        self.assertEqual(set(MODEL_SPECS), {"edw", "forecasting", "mass_balance", "monsoonality"})
        for name, spec in MODEL_SPECS.items():
            self.assertEqual(spec.name, name)
            self.assertEqual(spec.response, "glof")

    def test_edw_declaration(self):
        self.assertEqual(EDW_SPEC.terms, ("area_z", "growth_1990_2018"))
        self.assertEqual(EDW_SPEC.group_factors, ("elevation_quintile",))
        self.assertIsNone(EDW_SPEC.row_filter)

    def test_forecasting_declares_interaction(self):
        self.assertEqual(
            FORECASTING_SPEC.terms,
            ("area_z", "ratio_2005_1990_z", "area_z:ratio_2005_1990_z"),
        )
        self.assertEqual(FORECASTING_SPEC.predictor_columns, ["area_z", "ratio_2005_1990_z"])
        self.assertIsNotNone(FORECASTING_SPEC.row_filter)

    def test_mass_balance_and_monsoonality_groups(self):
        self.assertEqual(MASS_BALANCE_SPEC.group_factors, ("region", "elevation_quintile"))
        self.assertIn("mass_balance", MASS_BALANCE_SPEC.terms)
        self.assertEqual(MONSOONALITY_SPEC.group_factors, ("precip_quartile", "region"))

    def test_area_effect_prior_override(self):
        self.assertEqual(EDW_SPEC.prior_for("b", "area_z"), AREA_PRIOR)
        self.assertEqual(EDW_SPEC.prior_for("b", "growth_1990_2018"), WEAK_PRIOR)
        self.assertEqual(EDW_SPEC.prior_for("Intercept"), WEAK_PRIOR)
        self.assertEqual(EDW_SPEC.prior_for("sd", "elevation_quintile"), GROUP_SD_PRIOR)
        self.assertEqual(MASS_BALANCE_SPEC.prior_for("b", "catchment_z"), WEAK_PRIOR)

    def test_required_columns(self):
        self.assertEqual(
            MASS_BALANCE_SPEC.required_columns(),
            ["glof", "catchment_z", "ratio_2018_2005_z", "mass_balance", "region", "elevation_quintile"],
        )

    def test_prior_table(self):
        table = EDW_SPEC.prior_table()
        self.assertEqual(table["Intercept"], "student_t(nu=3, mu=0, sigma=2.5)")
        self.assertEqual(table["b_area_z"], "normal(mu=1, sigma=1)")
        self.assertEqual(table["sd_elevation_quintile"], "exponential(lam=1)")

    def test_get_model_spec(self):
        self.assertIs(get_model_spec("edw"), EDW_SPEC)
        with self.assertRaises(ConfigurationError):
            get_model_spec("unknown")


class TestModelSpecValidation(unittest.TestCase):
    """Tests for ModelSpec construction rules."""

    def test_no_terms_raises(self):
        with self.assertRaises(ConfigurationError):
            ModelSpec(name="empty", response="y", terms=(), group_factors=("g",))

    def test_duplicate_terms_raise(self):
        with self.assertRaises(ConfigurationError):
            ModelSpec(name="dup", response="y", terms=("x", "x"), group_factors=())

    def test_unsupported_prior_family_raises(self):
        with self.assertRaises(ConfigurationError):
            Prior("cauchy", (("alpha", 0.0),))

    def test_split_term(self):
        self.assertEqual(split_term("a:b"), ("a", "b"))
        self.assertEqual(split_term("a"), ("a",))


class TestForecastingWindow(unittest.TestCase):
    """Tests for the forecasting row filter."""

    def test_excludes_early_glofs_and_missing_change(self):
        frame = pd.DataFrame({
            "log_ratio_2005_1990": [0.1, 0.2, np.nan, 0.0, -0.1],
            "glof_period": ["BEFORE", "MID", "LATE", "LATE", "NONE"],
        })
        self.assertEqual(list(forecasting_window(frame)), [False, False, False, True, True])


if __name__ == "__main__":
    unittest.main()
