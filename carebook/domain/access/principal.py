"""Roles and the authenticated principal"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Role(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Parse a role string, raising ValueError for anything outside the closed set"""
        if isinstance(value, Role):
            return value
        return cls(str(value).strip().lower())


@dataclass(frozen=True)
class Principal:
    id: str
    role: Role
    display_name: str
    email: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role.value,
            "displayName": self.display_name,
            "email": self.email,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Principal":
        """Build a principal from persisted data; raises KeyError/ValueError/TypeError if malformed"""
        principal_id = data["id"]
        display_name = data["displayName"]
        if not isinstance(principal_id, str) or not principal_id:
            raise ValueError("principal id must be a non-empty string")
        if not isinstance(display_name, str):
            raise TypeError("displayName must be a string")
        return cls(
            id=principal_id,
            role=Role.parse(data["role"]),
            display_name=display_name,
            email=data.get("email"),
        )

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(id=user.id, role=Role.parse(user.role), display_name=user.full_name, email=user.email)
