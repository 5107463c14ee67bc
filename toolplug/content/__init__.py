"""Editorial copy for a chosen launch."""
