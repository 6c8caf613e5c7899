#!/usr/bin/env python3
"""
Custom exceptions for the GLOF risk analysis.

This module provides a hierarchy of exception classes tailored to the error
scenarios of data preparation, model fitting and evaluation.
"""
from typing import Any, Optional


class GlofError(Exception):
    """Base exception class for all GLOF analysis errors."""
    def __init__(self, message, details=None):
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self):
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


# Data-related errors
class DataError(GlofError):
    """Error related to data loading, validation, or preparation."""
    pass


class DataIntegrityError(DataError):
    """Failed join, missing required column or an invalid record correction."""
    pass


class EmptyDatasetError(DataIntegrityError):
    """No rows remain for a model after filtering."""
    pass


# Configuration-related errors
class ConfigurationError(GlofError):
    """Error related to configuration (including model and bucketing setup)."""
    pass


# Model-related errors
class ModelError(GlofError):
    """Base class for model-related errors."""
    pass


class ModelBuildError(ModelError):
    """Error related to building a model."""
    pass


class SamplingError(ModelError):
    """Error related to MCMC sampling."""
    def __init__(self, message, details=None, draws: Optional[Any] = None):
        super().__init__(message, details)
        # Completed posterior draws, when sampling itself finished
        self.draws = draws


class SamplingDivergenceError(SamplingError):
    """Chains reported more divergent transitions than tolerated."""
    pass


class SamplingNonConvergenceError(SamplingError):
    """Post-hoc convergence diagnostics exceeded their threshold."""
    pass


class ModelEvaluationError(ModelError):
    """Error related to model diagnostics or predictive evaluation."""
    pass


# Results-related errors
class ResultsError(GlofError):
    """Error related to results handling."""
    pass


VisualizationError = ResultsError
