from .user import User
from .vps import VPS, VPS_STATUSES
from .activity_log import ActivityLog, ACTIVITY_ACTIONS, ACTIVITY_STATUSES

__all__ = ["User", "VPS", "VPS_STATUSES", "ActivityLog", "ACTIVITY_ACTIONS", "ACTIVITY_STATUSES"]
