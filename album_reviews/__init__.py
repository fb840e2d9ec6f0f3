"""
Album Reviews Application Package.

This package contains the core application logic, including the rating
aggregation transaction, album query composition, realtime watches,
database operations, and utilities.
"""

__version__ = "1.0.0"
