"""Storefront settings.

Protean loads ``domain.toml`` and applies the overlay named by
``PROTEAN_ENV``. The storefront's own knobs live in the ``[custom]`` table and
are validated here.
"""

import os

from protean.domain import Domain
from pydantic import BaseModel, Field


class Settings(BaseModel):
    env: str = "development"
    currency: str = "INR"
    shipping_fee: float = Field(default=99.0, ge=0)
    free_shipping_threshold: float = Field(default=5000.0, ge=0)
    reserve_stock_on_placement: bool = True
    low_stock_threshold: int = Field(default=5, ge=0)
    orphan_grace_seconds: int = Field(default=300, ge=0)
    log_dir: str = ""

    @classmethod
    def from_domain(cls, domain: Domain) -> "Settings":
        custom = domain.config.get("custom") or {}
        values = {name: custom[name] for name in cls.model_fields if name in custom}
        values["env"] = current_env()
        return cls(**values)


def current_env() -> str:
    return (os.getenv("PROTEAN_ENV") or "development").lower()
