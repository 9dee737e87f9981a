"""Pydantic request/response schemas for the Identity API."""

from pydantic import BaseModel


class DeliveryProfileResponse(BaseModel):
    user_id: str
    phone: str | None = None
    address: str | None = None
