#!/usr/bin/env python3
"""
KV-Client Setup Script
======================
Allows installation of the kv-client package.

Usage:
    pip install -e .           # Development install
    pip install -e ".[test]"   # Development install with test tools
    pip install .              # Regular install
"""

from setuptools import setup, find_packages

setup(
    name="kv-client",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "kv-client=kvclient.cli:main",
        ],
    },
)
