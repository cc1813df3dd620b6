"""
Subwatch: subscription node-count tracking with scheduled refresh.
"""
__version__ = "0.1.0"
