"""Rulesmith - fraud-rule generation client for a remote analysis service."""

__version__ = "0.1.0"
