#!/usr/bin/env python3
"""
SIFIS-Home Runtime - Setup Script

For development installation:
    pip install -e .[dev]
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read version from package
version = "0.1.0"

# Read README
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text() if readme_path.exists() else ""

setup(
    name="sifis-home",
    version=version,
    description="Hazard-aware device control runtime and client for SIFIS-Home",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="SIFIS-Home Project",
    url="https://github.com/sifis-home/sifis-python",
    license="MIT",

    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",

    install_requires=[
        "cryptography>=3.4",
        "toml>=0.10",
    ],

    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "pytest-cov>=3.0",
        ],
    },

    entry_points={
        "console_scripts": [
            "sifisd=sifisd.main:main",
            "sifisctl=sifisctl.main:main",
        ],
    },

    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Home Automation",
    ],

    keywords="smart-home iot hazards rpc unix-socket",
)
