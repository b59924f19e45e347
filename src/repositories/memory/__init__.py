from .store import MemoryStore
from .memory_user_repository import MemoryUserRepository
from .memory_vps_repository import MemoryVPSRepository
from .memory_activity_log_repository import MemoryActivityLogRepository

__all__ = ["MemoryStore", "MemoryUserRepository", "MemoryVPSRepository", "MemoryActivityLogRepository"]
