"""Interfaces to external collaborators."""
