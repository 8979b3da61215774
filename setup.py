"""
Setup script for the volley-live package.

The internal modules (_engine, _sync, _shared) ship as plain Python
alongside the public API (scorer.py, config.py, persistence.py, errors.py).
"""

from setuptools import setup, find_packages

setup(
    name="volley-live",
    version="1.0.0",
    description="Live volleyball scorer with throttled broadcast to remote viewers",
    python_requires=">=3.10",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "python-dotenv>=1.0.0",
        "pydantic>=2.5.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    # Ship the SQLite schema next to persistence.py
    package_data={
        "volley_live": ["schema.sql"],
    },
    entry_points={
        "console_scripts": [
            "volley-live=volley_live.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
