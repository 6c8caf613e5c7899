"""
Bayesian modeling components for the GLOF risk models.
"""

from glof_risk.model.bayesian.model_builder import (
    BayesianModelBuilder, fixed_effect_name, group_sd_name, group_offset_name,
)

__all__ = ['BayesianModelBuilder', 'fixed_effect_name', 'group_sd_name', 'group_offset_name']
