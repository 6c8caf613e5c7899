"""
Configuration package for the GLOF risk analysis.

This package provides configuration management functionality for the
GLOF risk analysis project.
"""

from glof_risk.config.config_manager import AppConfig, ConfigManager

__all__ = ['AppConfig', 'ConfigManager']
