"""
Campaign Service

Clipping campaign management microservice providing:
- Campaign lifecycle (DRAFT -> ACTIVE -> ENDED), funding and auto-close
- Membership with editor slot capacity, waitlists and bans
- Role-based permissions with per-campaign admin switches
- Clip counters kept in step with clip events (exactly-once per event)
"""

__version__ = "2.0.0"
__service__ = "campaign_service"
