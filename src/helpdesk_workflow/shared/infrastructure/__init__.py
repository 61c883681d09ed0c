"""
Infrastructure Layer
=====================

Low-level technical concerns shared by every context:
- Logging setup
"""
