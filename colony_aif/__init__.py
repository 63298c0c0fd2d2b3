"""
Colony AIF Package

This package provides the per-agent active-inference decision core for a
colony-foraging simulation: observation normalization, predictive-coding
perception, affect regulation and expected-free-energy action selection.

Modules:
    core: World snapshot, agent state and the numerical components
    agents: Configuration, per-tick orchestration, factory and adapters
    utils: Numerics and argument parsing helpers
    scripts: Executable trace scripts
"""

__version__ = "1.0.0"
