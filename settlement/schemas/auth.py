"""Authentication schemas for JWT tokens and user context."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UserContext(BaseModel):
    """Authenticated user context extracted from JWT token."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID = Field(description="Unique identifier for the user (from JWT sub claim)")
    email: str | None = Field(default=None, description="User's email address if available")
    role: str | None = Field(default=None, description="User's role (e.g., 'authenticated', 'admin')")
    display_name: str | None = Field(default=None, description="Display name from user metadata")


class TokenPayload(BaseModel):
    """JWT token payload structure for Supabase tokens.

    Represents the claims contained in a Supabase-issued JWT.
    Used for validation and extraction of user information.
    """

    model_config = ConfigDict(from_attributes=True)

    sub: str = Field(description="Subject - the user's UUID")
    email: str | None = Field(default=None, description="User's email address")
    role: str | None = Field(default=None, description="User's role")
    exp: int = Field(description="Expiration timestamp (Unix epoch)")
    iat: int = Field(description="Issued at timestamp (Unix epoch)")
    aud: str | None = Field(default=None, description="Audience - intended recipient")
    iss: str | None = Field(default=None, description="Issuer - token issuer URL")
    app_metadata: dict[str, Any] = Field(default_factory=dict, description="Server-controlled user metadata")
    user_metadata: dict[str, Any] = Field(default_factory=dict, description="User-editable metadata")

    @property
    def expiration_datetime(self) -> datetime:
        """Get expiration as datetime object."""
        return datetime.fromtimestamp(self.exp)

    def effective_role(self, admin_role: str) -> str | None:
        """Role used for authorization.

        Supabase sets the top-level role claim to 'authenticated' for every
        signed-in user, so an application role in app_metadata wins when the
        top-level claim is not the admin role.
        """
        if self.role == admin_role:
            return self.role
        return self.app_metadata.get("role") or self.role

    def to_user_context(self, admin_role: str = "admin") -> UserContext:
        """Convert token payload to UserContext.

        Returns:
            UserContext: User context derived from token claims.
        """
        return UserContext(
            user_id=UUID(self.sub),
            email=self.email,
            role=self.effective_role(admin_role),
            display_name=self.user_metadata.get("display_name") or self.user_metadata.get("username"),
        )
