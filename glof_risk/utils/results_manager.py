#!/usr/bin/env python3
"""
Results Manager for the GLOF risk package.

Writes per-model tables, reports, figures and posterior traces to a results
directory and keeps a metadata index of everything written.
"""

import os
from datetime import datetime
from typing import Dict, Any, Optional, Union
from pathlib import Path

import pandas as pd

from glof_risk.utils.logging_utils import get_logger
from glof_risk.utils.decorators import log_errors
from glof_risk.utils.file_utils import ensure_dir_exists, save_json
from glof_risk.utils.serialization import to_serializable

logger = get_logger()


class ResultsManager:
    """
    Manager for model results, diagnostics, and visualizations.

    Attributes:
        results_dir (str): Directory for storing results of one model
        metadata (Dict[str, Any]): Index of the files written
    """

    def __init__(self, results_dir: Union[str, Path], experiment_name: str):
        """
        Initialize the ResultsManager.

        Args:
            results_dir: Base directory for storing results
            experiment_name: Name of the experiment (creates a subdirectory)
        """
        self.results_dir = os.path.join(str(results_dir), experiment_name)
        ensure_dir_exists(self.results_dir)

        self.metadata: Dict[str, Any] = {
            "experiment_name": experiment_name,
            "timestamp": datetime.now().isoformat(),
            "results_files": {},
            "figures": {},
        }

        logger.debug(f"Results directory for '{experiment_name}': {self.results_dir}")

    def _target(self, name: str, suffix: str, subdirectory: Optional[str]) -> str:
        directory = self.results_dir
        if subdirectory:
            directory = os.path.join(self.results_dir, subdirectory)
            ensure_dir_exists(directory)
        return os.path.join(directory, f"{name}.{suffix}")

    @log_errors(OSError, msg="Error saving table")
    def save_dataframe(
        self,
        df: pd.DataFrame,
        name: str,
        subdirectory: Optional[str] = None,
        index: bool = True
    ) -> str:
        """
        Save a DataFrame to CSV and record in metadata.

        Args:
            df: DataFrame to save
            name: Name of the DataFrame
            subdirectory: Optional subdirectory within results_dir
            index: Whether to write the index

        Returns:
            Path to the saved file
        """
        filename = self._target(name, "csv", subdirectory)
        df.to_csv(filename, index=index)

        self.metadata["results_files"][name] = {
            "type": "dataframe",
            "path": os.path.relpath(filename, self.results_dir),
            "rows": len(df),
            "columns": [str(c) for c in df.columns],
        }

        logger.info(f"Saved DataFrame '{name}' to {filename}")
        return filename

    @log_errors(OSError, msg="Error saving report")
    def save_dict(
        self,
        data: Dict[str, Any],
        name: str,
        subdirectory: Optional[str] = None
    ) -> str:
        """
        Save a dictionary to JSON.

        Args:
            data: Dictionary to save
            name: Name for the dictionary
            subdirectory: Optional subdirectory within results_dir

        Returns:
            Path to the saved file
        """
        filename = self._target(name, "json", subdirectory)
        save_json(to_serializable(data), filename)

        self.metadata["results_files"][name] = {
            "type": "json",
            "path": os.path.relpath(filename, self.results_dir),
        }

        logger.info(f"Saved report '{name}' to {filename}")
        return filename

    def save_inference_data(
        self,
        idata: Any,
        name: str = "trace",
        subdirectory: Optional[str] = "traces"
    ) -> str:
        """
        Save an ArviZ InferenceData object to NetCDF.

        Args:
            idata: ArviZ InferenceData object
            name: Name for the dataset
            subdirectory: Optional subdirectory within results_dir

        Returns:
            Path to the saved file
        """
        filename = self._target(name, "nc", subdirectory)
        idata.to_netcdf(filename)

        self.metadata["results_files"][name] = {
            "type": "inference_data",
            "path": os.path.relpath(filename, self.results_dir),
            "groups": list(idata.groups()),
        }

        logger.info(f"Saved InferenceData '{name}' to {filename}")
        return filename

    def write_metadata(self) -> str:
        """Write the metadata index next to the results."""
        filename = os.path.join(self.results_dir, "metadata.json")
        save_json(to_serializable(self.metadata), filename)
        return filename
