"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from sqlalchemy import JSON, Numeric, Uuid

# Use JSON instead of JSONB for cross-database compatibility
# JSONB is PostgreSQL-specific, JSON works with both SQLite and PostgreSQL
JSONType = JSON

# Native UUID on PostgreSQL, CHAR(32) elsewhere
UUIDType = Uuid

# Fixed-point columns. asdecimal keeps values as decimal.Decimal end to end.
Money = Numeric(14, 2, asdecimal=True)
Rate = Numeric(5, 2, asdecimal=True)
Quantity = Numeric(12, 3, asdecimal=True)
# Unit prices keep sub-cent precision; line amounts are rounded from them
UnitPrice = Numeric(14, 4, asdecimal=True)
