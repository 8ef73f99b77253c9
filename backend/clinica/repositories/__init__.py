"""SQLAlchemy implementations of the domain repository interfaces.

Repositories flush but never commit; the unit of work owns the transaction.
"""
