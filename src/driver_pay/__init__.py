"""Driver pay engine: profile resolution, rule evaluation and line-item reconciliation."""

__version__ = "1.0.0"
