# src/models/product.py

"""Product data model for inter-module data flow."""

import math
from dataclasses import dataclass, field


@dataclass
class Product:
    """A single catalog listing as returned by the products API."""

    id: int
    title: str
    price: float
    discount_percentage: float = 0.0
    category: str = ""
    brand: str = ""
    rating: float = 0.0
    thumbnail: str = ""
    images: list[str] = field(default_factory=lambda: list[str]())
    shipping_information: str = ""

    @property
    def cover_image(self) -> str:
        """First gallery image, falling back to the thumbnail."""
        return self.images[0] if self.images else self.thumbnail

    @property
    def discounted_price(self) -> float:
        """Price after applying the listed discount."""
        return self.price * (1 - self.discount_percentage / 100)

    @property
    def discount_badge(self) -> int:
        """Whole-number discount, rounded half up (0 when none)."""
        return math.floor(max(self.discount_percentage, 0.0) + 0.5)

    @property
    def rating_label(self) -> str:
        """Rating clamped to 0-5 with one decimal, e.g. ``'4.5'``."""
        return f"{min(max(self.rating, 0.0), 5.0):.1f}"
