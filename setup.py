"""
Setup configuration for kernel-janitor.

Installs kernel-janitor as a command-line tool.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read version from __init__.py
init_file = Path(__file__).parent / "kernel_janitor" / "__init__.py"
version = {}
with open(init_file) as f:
    for line in f:
        if line.startswith("__version__"):
            exec(line, version)
            break

# Read long description from README
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    with open(readme_file, encoding="utf-8") as f:
        long_description = f.read()

setup(
    name="kernel-janitor",
    version=version.get("__version__", "0.1.0"),
    author="kernel-janitor Contributors",
    description="Build, install and clean up source-built Linux kernels",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.7",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: System :: Systems Administration",
    ],
    python_requires=">=3.7",
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "kernel-janitor=kernel_janitor.cli:main",
        ],
    },
    keywords="kernel linux gentoo build cleanup administration",
)
