"""Concrete evaluation client implementations."""
