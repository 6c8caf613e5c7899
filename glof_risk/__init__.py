"""
GLOF Risk Analysis Package

This package estimates the probability that a Himalayan moraine-dammed
glacial lake has produced a glacial lake outburst flood (GLOF), using four
Bayesian multi-level logistic regressions. The package includes components
for:

- Loading, joining and correcting the lake tables
- Deriving standardized, ratio and bucket predictors
- Fitting the models with NUTS and checking convergence
- Summarizing posteriors and evaluating predictive calibration

Main components:
- model: Model specifications, fitting and evaluation
- data: Data loading, predictor derivation and synthetic lakes
- config: Configuration management
- utils: Logging, decorators and results persistence
"""

__version__ = '0.1.0'
