"""
Setup script for the Card Detection System.

This package provides an on-device single-shot detector for trading
cards, with ONNX Runtime and TorchScript inference backends.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_path = Path(__file__).parent / "README.md"
long_description = ""
if readme_path.exists():
    long_description = readme_path.read_text(encoding="utf-8")

# Read requirements
requirements_path = Path(__file__).parent / "requirements.txt"
requirements = []
if requirements_path.exists():
    requirements = [
        line.strip()
        for line in requirements_path.read_text().split("\n")
        if line.strip() and not line.startswith("#")
    ]

setup(
    name="card-detection",
    version="0.1.0",
    description="On-device single-shot detection of trading cards",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Package configuration
    packages=find_packages(where="src"),
    package_dir={"": "src"},

    # Python version requirement
    python_requires=">=3.8",

    # Dependencies
    install_requires=requirements,

    # Optional dependencies
    extras_require={
        "dev": [
            "pytest>=6.0.0",
            "pytest-cov>=2.0.0",
            "flake8>=3.9.0",
            "mypy>=0.900",
            "black>=21.0.0",
            "isort>=5.0.0",
            "onnx>=1.12.0",
            "onnxruntime>=1.10.0",
        ],
        "deploy": [
            "onnxruntime>=1.10.0",
        ],
    },

    # Entry points
    entry_points={
        "console_scripts": [
            "card-detect=card_detection.applications.detect_cli:main",
        ],
    },

    # Classifiers
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Scientific/Engineering :: Image Recognition",
    ],

    # Keywords
    keywords=[
        "computer vision",
        "object detection",
        "onnx",
        "pytorch",
        "edge computing",
    ],

    # Include package data
    include_package_data=True,
    package_data={
        "card_detection": ["configs/*.yaml"],
    },
)
