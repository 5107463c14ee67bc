"""Gemini access for the content generator."""
