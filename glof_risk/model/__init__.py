"""
Model package for the GLOF risk analysis.

This package provides the model specifications, fitting, diagnostics and
evaluation of the four hierarchical logistic GLOF models.

Only exceptions and specifications are imported here; the fitting
components pull in PyMC and ArviZ and are imported from their modules.
"""

from glof_risk.model.exceptions import (
    GlofError, DataError, DataIntegrityError, EmptyDatasetError, ConfigurationError,
    ModelError, ModelBuildError, SamplingError, SamplingDivergenceError,
    SamplingNonConvergenceError, ModelEvaluationError, ResultsError,
)
from glof_risk.model.model_spec import (
    ModelSpec, Prior, MODEL_SPECS, get_model_spec,
    EDW_SPEC, FORECASTING_SPEC, MASS_BALANCE_SPEC, MONSOONALITY_SPEC,
)

__all__ = [
    'GlofError', 'DataError', 'DataIntegrityError', 'EmptyDatasetError', 'ConfigurationError',
    'ModelError', 'ModelBuildError', 'SamplingError', 'SamplingDivergenceError',
    'SamplingNonConvergenceError', 'ModelEvaluationError', 'ResultsError',
    'ModelSpec', 'Prior', 'MODEL_SPECS', 'get_model_spec',
    'EDW_SPEC', 'FORECASTING_SPEC', 'MASS_BALANCE_SPEC', 'MONSOONALITY_SPEC',
]
