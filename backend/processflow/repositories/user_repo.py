"""User Repository - Data access for the user directory"""
from typing import List, Optional, Sequence
from pymongo.collection import Collection
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection, to_document, USERS
from ..domain.models import User
from ..domain.enums import UserRole
from ..domain.errors import ValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class UserRepository:
    """Repository for users; ADMIN and APPROVER users form the approver pool"""

    def __init__(self):
        self._users: Collection = get_collection(USERS)

    def create_user(self, user: User) -> User:
        """Create a user"""
        try:
            self._users.insert_one(to_document(user, user.user_id))
        except DuplicateKeyError:
            raise ValidationError(f"User {user.email} already exists")
        logger.info(f"Created user: {user.user_id}", extra={"user_id": user.user_id})
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        """Get user by ID"""
        doc = self._users.find_one({"_id": user_id})
        if doc:
            doc.pop("_id", None)
            return User.model_validate(doc)
        return None

    def list_by_roles(self, roles: Sequence[UserRole]) -> List[User]:
        """Users holding any of the given roles"""
        cursor = self._users.find(
            {"role": {"$in": [UserRole(role).value for role in roles]}}
        ).sort("email", ASCENDING)

        users = []
        for doc in cursor:
            doc.pop("_id", None)
            users.append(User.model_validate(doc))
        return users
