"""
slotengine - availability and booking slot resolution for service professionals.
"""

__version__ = "0.1.0"
