"""
Python package configuration for glof-risk.

This setup script configures the package for distribution and installation,
defining metadata, dependencies, and entry points.
"""
from setuptools import setup, find_packages

# Read the long description from README.md
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Parse requirements from requirements.txt
with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh.readlines() if line.strip() and not line.startswith("#")]

# Configure package metadata and dependencies
setup(
    # Basic package information
    name="glof-risk",
    version="0.1.0",
    description="Bayesian multi-level logistic models of glacial lake outburst flood risk",

    # Detailed description for PyPI page
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Only the glof_risk package tree is installed
    packages=find_packages(include=["glof_risk", "glof_risk.*"]),

    # PyPI classifiers for package categorization
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],

    # Python version requirements
    python_requires=">=3.10",

    # Dependencies from requirements.txt
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },

    # Command-line scripts that can be called after installation
    entry_points={
        "console_scripts": [
            "glof-analysis=glof_risk.main:main",
        ],
    },
)
