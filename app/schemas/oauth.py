# app/schemas/oauth.py
from pydantic import BaseModel, ConfigDict, Field


class GoogleTokens(BaseModel):
    """
    Google OAuth credentials as persisted in the token store.
    """

    model_config = ConfigDict(from_attributes=True)

    access_token: str = Field(..., description="Short-lived bearer token.")
    refresh_token: str = Field(..., description="Long-lived token used to refresh access.")
    expires_at: int = Field(
        ...,
        description="Expiry of access_token as epoch milliseconds.",
        examples=[1736503200000],
    )
    token_type: str = Field("Bearer", description="Token type returned by Google.")
    scope: str | None = Field(None, description="Space-separated granted scopes.")
