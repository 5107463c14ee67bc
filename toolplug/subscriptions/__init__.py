"""Subscriber lifecycle: pending, confirmed, removed."""
