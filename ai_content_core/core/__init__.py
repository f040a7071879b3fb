"""
Core modules for AI Content Core.

This package contains the data model, pricing tables, cost calculation,
error taxonomy, retry handling and task policies shared by the adapters.
"""
