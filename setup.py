#!/usr/bin/env python3
"""
Setup script for kpower package.
"""

import re
from setuptools import setup, find_packages
from pathlib import Path

# Read the README file for long description
this_directory = Path(__file__).parent
readme_path = this_directory / "README.md"
long_description = readme_path.read_text(encoding='utf-8') if readme_path.exists() else ""

# Read requirements from requirements.txt
requirements = []
requirements_path = this_directory / "requirements.txt"
if requirements_path.exists():
    requirements = requirements_path.read_text().strip().split('\n')
    requirements = [req.strip() for req in requirements if req.strip() and not req.startswith('#')]

# Read version without importing the package (its dependencies may not be installed yet)
constants = (this_directory / "kpower" / "core" / "constants.py").read_text(encoding='utf-8')
version = re.search(r'^VERSION = "([^"]+)"', constants, re.MULTILINE).group(1)

setup(
    name="kpower",
    version=version,
    description="Parametric-bootstrap power for choosing the number of mixture categories with IQ-TREE",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["kpower", "kpower.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    keywords="phylogenetics bioinformatics mixture-models iqtree alisim parametric-bootstrap model-selection",
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "visualization": ["matplotlib>=3.5.0", "seaborn>=0.11.0"],
        "dev": ["pytest>=6.0", "pytest-cov", "black", "flake8"],
        "test": ["pytest>=6.0", "pytest-cov"],
    },
    entry_points={
        "console_scripts": [
            "kpower=kpower.cli:main",
        ],
    },
    zip_safe=False,
)
