"""Repository for the Product aggregate."""

from shared.domain import storefront
from shared.repository import StorefrontRepository

from inventory.product.product import Product


@storefront.repository(part_of=Product)
class ProductRepository(StorefrontRepository):
    id_field = "product_id"
    label = "Product"

    def all(self) -> list[Product]:
        return sorted(self.query(), key=lambda product: product.name)

    def low_stock(self, threshold: int) -> list[Product]:
        return [product for product in self.all() if product.is_low_on_stock(threshold)]

    def with_holds(self) -> list[Product]:
        """Products carrying stock held for a placement that has not been settled."""
        return [product for product in self.all() if product.holds]
