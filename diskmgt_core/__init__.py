"""
diskmgt core - track, label and reconcile external drives.
"""

__version__ = "0.3.0"
