#!/usr/bin/env python3
"""
Tests for the configuration manager.
"""
import unittest
import json
import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

# Add the parent directory to sys.path so we can import glof_risk
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from glof_risk.config.config_manager import AppConfig, ConfigManager
from glof_risk.model.sampling import MCMCConfig


class TestAppConfig(unittest.TestCase):
    """Tests for the configuration dataclass."""

    def test_defaults(self):
        config = AppConfig()
        self.assertEqual(config.model_names, ["edw", "forecasting", "mass_balance", "monsoonality"])
        self.assertEqual(config.model_num_chains, 4)
        self.assertEqual(config.model_warmup_iters, 1000)
        self.assertEqual(config.model_total_iters_per_chain, 2000)
        self.assertTrue(config.data_apply_corrections)
        self.assertEqual(config.log_level, "INFO")
        self.assertIsNone(config.log_file)

    def test_mcmc_settings_build_config(self):
        config = AppConfig(model_num_chains=2, model_warmup_iters=100, model_total_iters_per_chain=300)
        mcmc = MCMCConfig.from_dict(config.mcmc_settings())
        self.assertEqual(mcmc.num_chains, 2)
        self.assertEqual(mcmc.draws_per_chain, 200)
        self.assertIsNone(mcmc.cores)


class TestConfigManager(unittest.TestCase):
    """Tests for file loading, environment overrides and validation."""

    def setUp(self):
        env = patch.dict(os.environ)
        env.start()
        self.addCleanup(env.stop)
        for name in list(os.environ):
            if name.startswith(ConfigManager.ENV_PREFIX):
                del os.environ[name]
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_load_config_maps_unprefixed_keys(self):
        path = self.dir / "config.json"
        path.write_text(json.dumps({
            "num_chains": 2,
            "column_mappings": {"GLIMS_ID": "lake_id"},
            "results_dir": "out",
            "not_a_setting": 1,
        }))
        config = ConfigManager(path).app_config
        self.assertEqual(config.model_num_chains, 2)
        self.assertEqual(config.data_column_mappings, {"GLIMS_ID": "lake_id"})
        self.assertEqual(config.results_dir, "out")

    def test_missing_file_keeps_defaults(self):
        config = ConfigManager(self.dir / "missing.json").app_config
        self.assertEqual(config.model_num_chains, 4)

    def test_env_overrides(self):
        os.environ["GLOF_MODEL_NUM_CHAINS"] = "3"
        os.environ["GLOF_CREATE_PLOTS"] = "false"
        os.environ["GLOF_MODEL_NAMES"] = "edw, monsoonality"
        os.environ["GLOF_MODEL_TARGET_ACCEPT"] = "0.9"
        config = ConfigManager().app_config
        self.assertEqual(config.model_num_chains, 3)
        self.assertFalse(config.create_plots)
        self.assertEqual(config.model_names, ["edw", "monsoonality"])
        self.assertAlmostEqual(config.model_target_accept, 0.9)

    def test_invalid_env_value_ignored(self):
        os.environ["GLOF_MODEL_NUM_CHAINS"] = "many"
        config = ConfigManager().app_config
        self.assertEqual(config.model_num_chains, 4)

    def test_validate_clamps_values(self):
        manager = ConfigManager()
        config = manager.app_config
        config.model_num_chains = 0
        config.model_warmup_iters = 500
        config.model_total_iters_per_chain = 100
        config.model_target_accept = 1.5
        config.model_names = ["edw", "unknown"]
        config.max_workers = 0

        self.assertTrue(manager.validate())
        self.assertEqual(config.model_num_chains, 1)
        self.assertEqual(config.model_total_iters_per_chain, 1000)
        self.assertEqual(config.model_target_accept, 0.95)
        self.assertEqual(config.model_names, ["edw"])
        self.assertEqual(config.max_workers, 1)

    def test_logging_settings_from_env_and_validation(self):
        os.environ["GLOF_LOG_LEVEL"] = "debug"
        os.environ["GLOF_LOG_FILE"] = str(self.dir / "glof.log")
        os.environ["GLOF_LOG_TO_FILE"] = "false"
        config = ConfigManager().app_config
        self.assertEqual(config.log_level, "DEBUG")
        self.assertEqual(config.log_file, str(self.dir / "glof.log"))
        self.assertFalse(config.log_to_file)

        os.environ["GLOF_LOG_LEVEL"] = "chatty"
        self.assertEqual(ConfigManager().app_config.log_level, "INFO")

    def test_save_config_round_trip(self):
        manager = ConfigManager()
        manager.app_config.model_num_chains = 2
        path = self.dir / "saved" / "config.json"
        manager.save_config(path)
        self.assertEqual(ConfigManager(path).app_config.model_num_chains, 2)


if __name__ == "__main__":
    unittest.main()
