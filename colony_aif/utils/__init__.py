"""
Utility functions shared across the package.

This module contains the scalar numerics used by the decision core and the
argument parsing helpers used by the scripts.
"""

from .numerics import clamp, clamp01, drift, invert, lookup, mean, normalize, softmax
from .parsers import parse_pos, create_trace_parser

__all__ = [
    "clamp",
    "clamp01",
    "drift",
    "invert",
    "lookup",
    "mean",
    "normalize",
    "softmax",
    "parse_pos",
    "create_trace_parser",
]
