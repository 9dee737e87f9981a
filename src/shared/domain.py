"""Domain initialization and configuration."""

from protean.domain import Domain

# Domain Composition Root. Inventory, ordering and identity elements all
# register here; placement crosses all three in one saga.
storefront = Domain(name="storefront")
