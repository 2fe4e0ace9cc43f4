"""Adapters binding the pipeline to external tools."""
