"""
bird-db: HTTP query API over an in-memory bird taxonomy dataset.
"""

__version__ = "0.1.0"
