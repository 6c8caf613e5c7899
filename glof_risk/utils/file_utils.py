#!/usr/bin/env python3
"""
File utility functions for the GLOF risk package.
"""

import os
import json
from typing import Dict, Any, Union
from pathlib import Path

from glof_risk.utils.logging_utils import logger


def ensure_dir_exists(directory: Union[str, Path]) -> None:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        directory: Path to directory
    """
    if directory:
        os.makedirs(directory, exist_ok=True)
        logger.debug(f"Ensuring directory exists: {directory}")


def save_json(data: Dict[str, Any], filepath: Union[str, Path]) -> None:
    """
    Save dictionary to JSON file.

    Args:
        data: Dictionary to save (must already be JSON-serializable)
        filepath: Path to save JSON file
    """
    ensure_dir_exists(os.path.dirname(str(filepath)))

    with open(filepath, 'w') as f:
        json.dump(data, f, indent=2)

    logger.debug(f"Saved JSON data to {filepath}")
