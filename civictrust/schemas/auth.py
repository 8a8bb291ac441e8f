"""Identity schemas."""
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class Role(str, Enum):
    citizen = "citizen"
    worker = "worker"
    admin = "admin"


class DemoRole(BaseModel):
    """Role of a built-in demo account, derived from its seed email."""

    kind: Literal["demo"] = "demo"
    role: Role


class IssuedRole(BaseModel):
    """Role issued by the identity provider at login."""

    kind: Literal["issued"] = "issued"
    role: Role


RoleGrant = Annotated[Union[DemoRole, IssuedRole], Field(discriminator="kind")]


class UserProfile(BaseModel):
    id: str
    email: str
    name: str
    ward: str
    device_id: str
    created_at: datetime
    role_grant: RoleGrant

    @property
    def role(self) -> Role:
        return self.role_grant.role


class LoginRequest(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)
    device_id: str = Field(default="api-unknown", max_length=120)


class LoginResponse(BaseModel):
    session_token: str
    role: Role
    role_source: str
    profile: UserProfile
