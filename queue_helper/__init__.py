"""
queue-helper
============
Pluggable messaging over interchangeable broker backends.
"""

__version__ = "1.0.0"
