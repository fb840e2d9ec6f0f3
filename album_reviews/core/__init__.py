"""
Core rating logic for the album reviews service.

This package contains:
- Rating validation and aggregate math
- Album query composition (filters and sort order)
- The aggregation transaction, sole writer of album rating aggregates
"""
