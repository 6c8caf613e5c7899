#!/usr/bin/env python3
"""
Serialization utilities for the GLOF risk package.
"""

import math
import numpy as np
import pandas as pd
from dataclasses import asdict, is_dataclass
from typing import Any

from glof_risk.utils.logging_utils import logger


def to_serializable(obj: Any) -> Any:
    """
    Convert object to JSON-serializable format.

    Non-finite floats become None so reports never carry NaN or infinity.

    Args:
        obj: Object to convert

    Returns:
        JSON-serializable representation of object
    """
    if isinstance(obj, (bool, np.bool_)):
        return bool(obj)
    elif isinstance(obj, (np.integer,)):
        return int(obj)
    elif isinstance(obj, (float, np.floating)):
        value = float(obj)
        return value if math.isfinite(value) else None
    elif isinstance(obj, (np.ndarray, list, tuple)):
        return [to_serializable(x) for x in obj]
    elif isinstance(obj, dict):
        return {str(k): to_serializable(v) for k, v in obj.items()}
    elif is_dataclass(obj) and not isinstance(obj, type):
        return to_serializable(asdict(obj))
    elif isinstance(obj, pd.DataFrame):
        return {
            'columns': [str(c) for c in obj.columns],
            'index': [to_serializable(i) for i in obj.index],
            'data': to_serializable(obj.values.tolist())
        }
    elif isinstance(obj, pd.Series):
        return {
            'name': obj.name,
            'index': [to_serializable(i) for i in obj.index],
            'data': to_serializable(obj.values.tolist())
        }
    elif obj is None or isinstance(obj, (str, int)):
        return obj
    else:
        try:
            return str(obj)
        except Exception:
            logger.warning(f"Cannot serialize object of type {type(obj)}")
            return None
