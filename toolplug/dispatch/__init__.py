"""Delivery of period picks to confirmed subscribers."""
