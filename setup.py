#!/usr/bin/env python3
"""
Setup configuration for the Uppercase Stream Pipeline.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the contents of README file
this_directory = Path(__file__).parent
readme = this_directory / "README.md"
long_description = readme.read_text() if readme.exists() else ""

# Read requirements from requirements.txt
requirements = []
if (this_directory / "requirements.txt").exists():
    requirements = (this_directory / "requirements.txt").read_text().strip().split('\n')
    requirements = [req.strip() for req in requirements if req.strip() and not req.startswith('#')]

setup(
    name="upcase-stream-pipeline",
    version="1.0.0",
    author="Project Think",
    author_email="",
    description="Streaming uppercase filter with optional gzip on input and output",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=['pipeline*']),
    py_modules=[
        'upcase',
        'stream_pipeline',
        'pipeline_configs',
        'pipeline_monitoring',
        'pipeline_errors',
        'cancellation',
        'base_classes',
        'run_tests'
    ],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Text Processing :: Filters",
        "Topic :: System :: Archiving :: Compression",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov",
            "pytest-asyncio",
            "black",
            "flake8",
            "mypy",
        ],
        "test": [
            "pytest>=7.0",
            "pytest-cov",
            "pytest-asyncio",
            "pytest-mock",
        ],
    },
    entry_points={
        "console_scripts": [
            "upcase=upcase:main",
            "run-pipeline-tests=run_tests:main",
        ],
    },
    keywords=[
        "streams",
        "gzip",
        "uppercase",
        "asyncio",
        "cli",
    ],
)
