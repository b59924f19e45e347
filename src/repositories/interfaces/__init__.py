from .user import IUserRepository
from .vps import IVPSRepository
from .activity_log import IActivityLogRepository

__all__ = ["IUserRepository", "IVPSRepository", "IActivityLogRepository"]
