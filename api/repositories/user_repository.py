from typing import Dict, List, Optional
from datetime import datetime, timezone

from database import BaseRepository
from errors import AdminDeletionError, DuplicateUserError
from models.user import User

# Fields replaced by update_user; id, email and password_hash are not touched
MUTABLE_FIELDS = (
    "name",
    "role",
    "plan",
    "daily_limit",
    "records_extracted_today",
    "last_active",
    "ip_address",
    "is_online",
    "is_blocked",
)


def user_to_row(user: User) -> Dict:
    row = user.model_dump(mode="json")
    row["email"] = user.email.lower()
    row["password_hash"] = user.password_hash
    return row


def row_to_user(row: Dict) -> User:
    data = {k: v for k, v in row.items() if k in User.model_fields}
    return User.model_validate(data)


class UserRepository(BaseRepository):
    """Repository for User accounts in Neo4j"""

    def list_users(self) -> List[User]:
        query = """
        MATCH (u:User)
        RETURN u
        ORDER BY u.created_at DESC
        """
        return [row_to_user(record['u']) for record in self.execute_query(query)]

    def get_user(self, user_id: str) -> Optional[User]:
        query = """
        MATCH (u:User {id: $id})
        RETURN u
        """
        result = self.execute_query(query, {"id": user_id})
        return row_to_user(result[0]['u']) if result else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        query = """
        MATCH (u:User {email: $email})
        RETURN u
        """
        result = self.execute_query(query, {"email": email.lower()})
        return row_to_user(result[0]['u']) if result else None

    def create_user(self, user: User) -> User:
        """Create a user node.

        Raises:
            DuplicateUserError: If the lower-cased email is already registered
        """
        if self.get_user_by_email(user.email):
            raise DuplicateUserError(f"User with email {user.email.lower()} already exists")

        query = """
        CREATE (u:User)
        SET u = $props, u.created_at = $created_at
        RETURN u
        """
        params = {
            "props": user_to_row(user),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        result = self.execute_query(query, params)
        return row_to_user(result[0]['u'])

    def update_user(self, user: User) -> Optional[User]:
        """Replace the mutable fields of an existing user"""
        row = user_to_row(user)
        query = """
        MATCH (u:User {id: $id})
        SET u += $props, u.updated_at = $updated_at
        RETURN u
        """
        params = {
            "id": user.id,
            "props": {field: row[field] for field in MUTABLE_FIELDS},
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        result = self.execute_query(query, params)
        return row_to_user(result[0]['u']) if result else None

    def delete_user(self, user_id: str) -> bool:
        """Delete a user.

        Raises:
            AdminDeletionError: If the user is an administrator
        """
        user = self.get_user(user_id)
        if user is None:
            return False
        if user.is_admin:
            raise AdminDeletionError(f"Administrator {user.email} cannot be deleted")

        query = """
        MATCH (u:User {id: $id})
        DETACH DELETE u
        RETURN count(u) as deleted
        """
        result = self.execute_query(query, {"id": user_id})
        return result[0]['deleted'] > 0 if result else False
