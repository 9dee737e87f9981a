"""Delivery profile: the phone and address a customer last checked out with.

Written as the final, best-effort step of order placement and read back to
pre-fill the next checkout. The profile's identity is the user id.
"""

from protean.fields import DateTime, String
from shared.domain import storefront
from shared.repository import StorefrontRepository, translated_errors
from shared.types import utcnow


@storefront.aggregate
class DeliveryProfile:
    phone = String(max_length=30)
    address = String(max_length=500)
    updated_at = DateTime()

    @property
    def user_id(self) -> str:
        return self.id


@storefront.repository(part_of=DeliveryProfile)
class ProfileRepository(StorefrontRepository):
    id_field = "user_id"
    label = "Delivery profile"

    def save(self, user_id: str, phone: str, address: str) -> DeliveryProfile:
        """Create or overwrite the profile for ``user_id``."""
        profile = self.find(user_id)
        with translated_errors():
            if profile is None:
                profile = DeliveryProfile(id=user_id, phone=phone, address=address, updated_at=utcnow())
            else:
                profile.phone = phone
                profile.address = address
                profile.updated_at = utcnow()
        return self.add(profile)
