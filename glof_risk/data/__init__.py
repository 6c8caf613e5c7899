"""
Data package for the GLOF risk analysis.

This package provides lake table loading and merging, derived predictor
computation, and synthetic lake data for validation.
"""

from glof_risk.data.data_loader import (
    DataLoader, RecordCorrection, REGION_LABEL_FIX_1544,
    load_and_merge, apply_corrections, read_table,
)
from glof_risk.data.data_preprocessor import (
    DataPreprocessor, PreparedDataset, ScaleParams,
    standardize, ratio_change, growth_flag, bucket_by_quantile, assign_temporal_bucket,
)

__all__ = [
    'DataLoader', 'RecordCorrection', 'REGION_LABEL_FIX_1544',
    'load_and_merge', 'apply_corrections', 'read_table',
    'DataPreprocessor', 'PreparedDataset', 'ScaleParams',
    'standardize', 'ratio_change', 'growth_flag', 'bucket_by_quantile', 'assign_temporal_bucket',
]
