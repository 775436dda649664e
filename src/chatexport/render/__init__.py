"""Target renderers for the canonical block model."""
