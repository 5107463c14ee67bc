"""Persistence of generated picks per period."""
