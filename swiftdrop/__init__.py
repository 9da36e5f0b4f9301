"""
SwiftDrop: a concurrent file upload queue with admission control.
"""

__version__ = "0.1.0"
