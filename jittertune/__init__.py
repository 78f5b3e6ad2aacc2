"""Calibration toolkit for velocity-adaptive pointer smoothing filters."""

from importlib.metadata import PackageNotFoundError, version

__all__ = ["__version__"]

try:
    __version__: str = version("jittertune")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
