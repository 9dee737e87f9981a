"""FastAPI endpoints for the Identity domain."""

from fastapi import APIRouter, Depends
from protean.utils.globals import current_domain

from identity.api.schemas import DeliveryProfileResponse
from identity.api.session import current_session
from identity.profile import DeliveryProfile
from identity.session import Session, require_user

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=DeliveryProfileResponse)
async def get_delivery_profile(session: Session = Depends(current_session)) -> DeliveryProfileResponse:
    """Phone and address from the last checkout, to pre-fill the next one."""
    user_id = require_user(session)
    profile = current_domain.repository_for(DeliveryProfile).find(user_id)
    if profile is None:
        return DeliveryProfileResponse(user_id=user_id)
    return DeliveryProfileResponse(user_id=user_id, phone=profile.phone, address=profile.address)
