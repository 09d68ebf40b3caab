"""Workflow-to-rule compiler and automation engine for ticket lifecycles."""

__version__ = "1.0.0"
