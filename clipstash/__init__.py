"""
ClipStash - local clipboard history store
"""

__version__ = "0.1.0"
