# conreg/core/__init__.py
"""Core numerical modules for conreg."""
from . import config, errors, linalg, numeric, svd

__all__ = ["config", "errors", "linalg", "numeric", "svd"]
