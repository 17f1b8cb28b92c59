"""
slotmatch - match booking requests to provider availability.
"""

__version__ = "0.1.0"
