"""HTML fragment normalisation: parsed tree, rich-text runs and content blocks."""
