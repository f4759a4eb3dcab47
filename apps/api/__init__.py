"""HTTP surface for the reasoning pipeline."""
