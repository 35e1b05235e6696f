"""
Layergraph: layer-graph configuration for neural networks
"""

from pathlib import Path
from setuptools import setup, find_packages

ROOT_DIR = Path(__file__).parent

# Read README for long description
long_description = ""
readme = ROOT_DIR / "README.md"
if readme.exists():
    long_description = readme.read_text()

# Setup configuration
setup(
    name="layergraph",
    version="0.1.0",
    author="Layergraph Team",
    description="Layer-graph configuration engine: declarations to a validated network structure",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.8",
    install_requires=[
        "torch>=2.0.0",
        "numpy>=1.21.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "black>=22.0",
            "isort>=5.0",
        ],
    },
    zip_safe=False,
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
    ],
)
