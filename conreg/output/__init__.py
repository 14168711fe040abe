# conreg/output/__init__.py
"""Output module for constrained regression results."""
from .summary import regression_summary, result_frame

__all__ = ["regression_summary", "result_frame"]
