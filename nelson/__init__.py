"""Nelson — multi-stage pediatric reasoning pipeline."""

__version__ = "0.1.0"
