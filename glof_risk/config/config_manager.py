"""
Configuration manager for the GLOF risk analysis.

This module provides a centralized configuration management system with
structured configuration classes using dataclasses. Values come from the
dataclass defaults, then an optional JSON file, then ``GLOF_<FIELD>``
environment variables.
"""
import json
import os
from dataclasses import dataclass, asdict, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from glof_risk.utils.logging_utils import get_logger
from glof_risk.model.constants import (
    DEFAULT_CHAINS, DEFAULT_WARMUP, DEFAULT_TOTAL_ITERS, DEFAULT_TARGET_ACCEPT,
    DEFAULT_RANDOM_SEED, DEFAULT_MAX_DIVERGENCES, RHAT_THRESHOLD, LAKE_ID_COL,
)
from glof_risk.model.model_spec import MODEL_SPECS

logger = get_logger()

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class AppConfig:
    """Unified application configuration parameters with prefixed attributes"""
    # App settings
    results_dir: str = "results"
    create_plots: bool = True
    save_traces: bool = False
    log_level: str = "INFO"
    log_to_file: bool = True  # run.log in the results directory
    log_file: Optional[str] = None
    max_workers: int = 1

    # Model settings (with model_ prefix)
    model_names: List[str] = field(default_factory=lambda: list(MODEL_SPECS))
    model_num_chains: int = DEFAULT_CHAINS
    model_warmup_iters: int = DEFAULT_WARMUP
    model_total_iters_per_chain: int = DEFAULT_TOTAL_ITERS
    model_target_accept: float = DEFAULT_TARGET_ACCEPT
    model_random_seed: int = DEFAULT_RANDOM_SEED
    model_cores: int = 0  # 0 means min(chains, cpu count)
    model_max_divergences: int = DEFAULT_MAX_DIVERGENCES
    model_rhat_threshold: float = RHAT_THRESHOLD

    # Data settings (with data_ prefix)
    data_primary_path: str = "data/lakes.csv"
    data_secondary_path: str = "data/lake_climate.csv"
    data_primary_key: str = LAKE_ID_COL
    data_secondary_key: str = LAKE_ID_COL
    data_column_mappings: Dict[str, str] = field(default_factory=dict)
    data_apply_corrections: bool = True

    def mcmc_settings(self) -> Dict[str, Any]:
        """Sampler settings in the keyword form of MCMCConfig."""
        return {
            "num_chains": self.model_num_chains,
            "warmup_iters": self.model_warmup_iters,
            "total_iters_per_chain": self.model_total_iters_per_chain,
            "target_accept": self.model_target_accept,
            "random_seed": self.model_random_seed,
            "cores": self.model_cores or None,
            "max_divergences": self.model_max_divergences,
        }


class ConfigManager:
    """
    Unified configuration manager with typed configuration objects.
    """

    # Environment variable prefix for overrides
    ENV_PREFIX = "GLOF_"

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to a JSON configuration file.
        """
        self.app_config = AppConfig()

        if config_path:
            self.load_config(config_path)

        self._apply_env_overrides()
        self.validate()

    def load_config(self, config_path: Union[str, Path]) -> None:
        """
        Load configuration from a JSON file.

        Unprefixed model and data keys are mapped to their prefixed fields.

        Args:
            config_path: Path to a JSON configuration file.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            logger.warning(f"Configuration file not found: {config_path}")
            return

        try:
            with open(config_path, 'r') as f:
                config_dict = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading configuration: {str(e)}")
            return

        app_fields = {f.name for f in fields(AppConfig)}
        for key, value in config_dict.items():
            for name in (key, f"model_{key}", f"data_{key}"):
                if name in app_fields:
                    setattr(self.app_config, name, value)
                    break
            else:
                logger.warning(f"Ignoring unknown configuration key: {key}")

        logger.info(f"Loaded configuration from {config_path}")

    @staticmethod
    def _convert(raw: str, current: Any) -> Any:
        if current is None:
            return raw
        if isinstance(current, bool):
            return raw.lower() in ('true', 'yes', '1')
        if isinstance(current, list):
            return [item.strip() for item in raw.split(',') if item.strip()]
        if isinstance(current, dict):
            return json.loads(raw)
        return type(current)(raw)

    def _apply_env_overrides(self) -> None:
        """Apply configuration overrides from environment variables."""
        for field_info in fields(AppConfig):
            env_name = f"{self.ENV_PREFIX}{field_info.name.upper()}"
            if env_name not in os.environ:
                continue
            try:
                value = self._convert(os.environ[env_name], getattr(self.app_config, field_info.name))
            except (ValueError, TypeError) as e:
                logger.warning(f"Invalid env value for {field_info.name}: {str(e)}")
                continue
            setattr(self.app_config, field_info.name, value)
            logger.debug(f"Applied env override for {field_info.name}: {value}")

    def save_config(self, filepath: Union[str, Path]) -> None:
        """
        Save the current configuration to a JSON file.

        Args:
            filepath: Path to save the configuration to.
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'w') as f:
            json.dump(asdict(self.app_config), f, indent=4)
        logger.info(f"Saved configuration to {filepath}")

    def validate(self) -> bool:
        """
        Validate the current configuration and fix common issues.

        Returns:
            True once the configuration has been made usable
        """
        config = self.app_config

        unknown = [name for name in config.model_names if name not in MODEL_SPECS]
        if unknown:
            logger.warning(f"Unknown models {unknown} removed. Available: {list(MODEL_SPECS)}")
            config.model_names = [name for name in config.model_names if name in MODEL_SPECS]
        if not config.model_names:
            logger.warning("No models selected. Running all models.")
            config.model_names = list(MODEL_SPECS)

        if not config.results_dir:
            logger.warning("No results directory specified. Using default 'results'.")
            config.results_dir = "results"

        level = str(config.log_level).upper()
        if level not in LOG_LEVELS:
            logger.warning(f"Unknown log level {config.log_level!r}. Using 'INFO'.")
            level = "INFO"
        config.log_level = level

        for path_field in ("data_primary_path", "data_secondary_path"):
            path = Path(getattr(config, path_field))
            if not path.exists():
                logger.warning(f"Data file not found: {path}. Please ensure it exists.")

        if config.model_num_chains < 1:
            logger.warning(f"num_chains too small: {config.model_num_chains}. Setting to 1.")
            config.model_num_chains = 1

        if config.model_warmup_iters < 0:
            logger.warning(f"warmup_iters negative: {config.model_warmup_iters}. Setting to 0.")
            config.model_warmup_iters = 0

        if config.model_total_iters_per_chain <= config.model_warmup_iters:
            fixed = 2 * max(config.model_warmup_iters, 1)
            logger.warning(
                f"total_iters_per_chain ({config.model_total_iters_per_chain}) must exceed "
                f"warmup_iters ({config.model_warmup_iters}). Setting to {fixed}."
            )
            config.model_total_iters_per_chain = fixed

        if not 0.0 < config.model_target_accept < 1.0:
            logger.warning(
                f"target_accept out of range: {config.model_target_accept}. "
                f"Setting to {DEFAULT_TARGET_ACCEPT}."
            )
            config.model_target_accept = DEFAULT_TARGET_ACCEPT

        if config.max_workers < 1:
            logger.warning(f"max_workers too small: {config.max_workers}. Setting to 1.")
            config.max_workers = 1

        return True
