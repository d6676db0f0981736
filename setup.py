# File: gcadjust/setup.py
# Location: gcadjust/setup.py
"""
Setup script for gcadjust.

This file configures how the package is built, installed, and what
dependencies are required.
"""

import os
from setuptools import setup, find_packages

# Load version from version.py without importing the module
version = {}
with open(os.path.join("gcadjust", "version.py")) as f:
    exec(f.read(), version)

# Read the README for the long description
this_dir = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_dir, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="gcadjust",
    version=version["__version__"],
    description="Genomic control and multiple-testing adjustment of association results.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["gcadjust", "gcadjust.*"]),
    python_requires=">=3.10",
    install_requires=[
        "numpy",
        "pandas",
        "psutil",
        "scipy",
    ],
    extras_require={
        "test": [
            "pytest",
            "statsmodels",
        ],
    },
    include_package_data=True,
    package_data={"gcadjust": ["config.json"]},
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
    ],
)
