"""
kernel-janitor - Linux Kernel Update and Cleanup Tool

Builds and installs the newest kernel sources found on the system, then
removes the images, modules, sources and boot files of older kernels.
"""

__version__ = "0.1.0"
__author__ = "kernel-janitor Contributors"
__license__ = "MIT"

from .cli import main

__all__ = ["main"]
