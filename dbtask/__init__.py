"""
dbtask package.

Single-use database units of work:
- Acquire a connection from a caller-owned data source
- Run one prepared statement through caller-supplied query logic
- Release every acquired resource, whatever the outcome
"""

__version__ = "0.1.0"
