"""
SLA Deadline Tracking Module
============================

Bounded Context for Service Level Agreement deadlines.

Responsibilities:
- Calculate response and resolution deadlines from priority and category
- Report breach status and compliance over resolved tickets
- Stamp the lifecycle timestamps that freeze or restart the clocks
- Warn assignees when a clock is at risk or breached
- Reload the policy table from YAML without a restart
"""

__version__ = "1.0.0"
