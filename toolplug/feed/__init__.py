"""Product Hunt launch feed."""
