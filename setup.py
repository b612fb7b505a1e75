#!/usr/bin/env python3
"""
NDN-Opp Transport Core - Setup Script

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
    name="ndnopp",
    version=version,
    description="Opportunistic packet transport core for delay-tolerant NDN nodes",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="NDN-Opp Project",
    license="LGPLv3",
    
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    
    install_requires=[
        "cryptography>=3.4",
        "toml>=0.10",
    ],
    
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=3.0",
            "black>=22.0",
            "mypy>=0.9",
        ],
    },
    
    entry_points={
        "console_scripts": [
            "ndnoppd=ndnopp.main:main",
        ],
    },
    
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Communications",
        "Topic :: System :: Networking",
    ],
    
    keywords="ndn icn dtn opportunistic wifi-direct networking",
)
