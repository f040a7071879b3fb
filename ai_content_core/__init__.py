"""
AI Content Core.

Provider adapters, cost accounting, retry handling and output parsing for
blog and social content generation.
"""

__version__ = "0.1.0"
