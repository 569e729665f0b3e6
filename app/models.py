from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

class RegisterReq(BaseModel):
    # Missing fields are reported as 400 by the handler, not as 422.
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: str = "fan"

class LoginReq(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class CommentReq(BaseModel):
    content: str = ""

class SubscriptionCreateReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    creator_id: str = Field(validation_alias=AliasChoices("creatorId", "creator_id"))
    price_cents: int = Field(validation_alias=AliasChoices("priceCents", "price_cents"))
