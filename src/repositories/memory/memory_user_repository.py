from typing import List, Optional
from src.database import models
from src.repositories.interfaces import IUserRepository
from .store import MemoryStore

class MemoryUserRepository(IUserRepository):
    def __init__(self, store: MemoryStore):
        self.store = store

    def create(self, user_model: models.User) -> models.User:
        with self.store.lock:
            user_model.id = self.store.next_id("users")
            if user_model.role is None:
                user_model.role = "user"
            if user_model.is_active is None:
                user_model.is_active = True
            self.store.stamp_created(user_model)
            self.store.users[user_model.id] = user_model
        return user_model

    def update(self, user_model: models.User) -> models.User:
        with self.store.lock:
            self.store.stamp_updated(user_model)
            self.store.users[user_model.id] = user_model
        return user_model

    def find_by_id(self, user_id: int) -> Optional[models.User]:
        return self.store.users.get(user_id)

    def find_by_username(self, username: str) -> Optional[models.User]:
        with self.store.lock:
            return next((u for u in self.store.users.values() if u.username == username), None)

    def list_all(self) -> List[models.User]:
        with self.store.lock:
            return sorted(self.store.users.values(), key=lambda u: u.username)

    def delete(self, user: models.User) -> bool:
        with self.store.lock:
            return self.store.users.pop(user.id, None) is not None if user else False
