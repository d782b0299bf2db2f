"""LLM-as-judge evaluation layer for an autonomous research agent."""

__version__ = "0.1.0"
