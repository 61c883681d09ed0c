"""
Shared Infrastructure
=====================

Database engine, sessions and the SQLAlchemy unit of work.
"""
