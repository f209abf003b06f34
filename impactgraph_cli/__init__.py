"""ImpactGraph CLI: declaration-level change-impact analysis for TS/JS/Vue projects."""

__version__ = "0.1.0"
