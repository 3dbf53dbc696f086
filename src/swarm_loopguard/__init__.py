"""Persistent multi-type loop detection for multi-agent LLM swarms."""

__version__ = "0.1.0"
