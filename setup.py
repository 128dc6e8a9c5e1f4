"""
setup.py

Package installer configuration for the FFT accuracy oracle.
This file defines the package metadata, dependencies, and build settings
required for installing the fft_oracle library and its command line tool.

The source modules live under src/ and are discovered automatically.
"""

from setuptools import setup, find_packages

# Read the long description from the project README for PyPI display.
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="fft-oracle",
    version="0.1.0",
    description="Single tone accuracy oracle for single precision FFT engines",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # All importable packages are located inside the src/ directory.
    package_dir={"": "src"},
    packages=find_packages(where="src"),

    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Mathematics",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
    ],
    python_requires=">=3.10",

    # Core scientific computing libraries required at runtime.
    # scipy.fft provides the single precision engine, matplotlib the
    # spectrum plots of replayed failures.
    install_requires=[
        "numpy>=1.20.0",
        "scipy>=1.7.0",
        "matplotlib>=3.3.0",
    ],

    # Optional dependency group for development.
    extras_require={
        "dev": ["pytest>=6.0", "pytest-cov", "black", "flake8"],
    },

    entry_points={
        "console_scripts": [
            "fft-oracle=fft_oracle.cli:main",
        ],
    },
)
