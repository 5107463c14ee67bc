"""Routing of launch candidates into editorial categories."""
