"""
Notification Dispatch Module
============================

Bounded Context for in-app notifications.

Responsibilities:
- Create notification records addressed to a single recipient
- Skip empty or unknown recipients with a warning
- Keep delivery best-effort so workflow transitions never fail on it
- Let the recipient mark a notification as read
"""

__version__ = "1.0.0"
