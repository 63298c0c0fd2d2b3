"""
Executable scripts for the colony AIF decision core.

This module contains entry points that build a world snapshot, run the
decision core and print its diagnostics.
"""

# Scripts are intended to be run directly, not imported
