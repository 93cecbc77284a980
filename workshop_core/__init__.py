"""
Workshop repair status and queue engine.
"""

__version__ = "1.0.0"
