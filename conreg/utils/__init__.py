# conreg/utils/__init__.py
"""Utility functions module."""
from .constraints import parse_linear_equality, split_constraint_items
from .worm import WormMap, WormMapBuilder

__all__ = [
    "WormMap",
    "WormMapBuilder",
    "parse_linear_equality",
    "split_constraint_items",
]
