"""
protonkit - Proton prefix and component manager for Linux
"""

__version__ = "0.3.0"
