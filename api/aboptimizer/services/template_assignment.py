"""Seam to the storefront platform: put a product on the winning template.

The platform call itself lives outside this service.  ``TemplateAssigner``
is the contract the winner handler depends on; ``LoggingTemplateAssigner``
is the default and only records what would be assigned.
"""

from __future__ import annotations

import logging
from typing import Protocol

from aboptimizer.models.ab_test import ABTest

logger = logging.getLogger(__name__)


class TemplateAssigner(Protocol):
    async def assign(self, test: ABTest) -> None:
        """Switch ``test.product_id`` to the variant template."""
        ...


def product_gid(product_id: str) -> str:
    """Normalize a numeric product id to its global id form."""
    if product_id.startswith("gid://"):
        return product_id
    return f"gid://shopify/Product/{product_id}"


def template_suffix(template: str) -> str | None:
    """Template suffix to assign; ``None`` selects the theme default."""
    return None if template == "default" else template


class LoggingTemplateAssigner:
    """Records the intended assignment without calling the platform."""

    def __init__(self) -> None:
        self.assigned: list[tuple[str, str | None]] = []

    async def assign(self, test: ABTest) -> None:
        gid = product_gid(test.product_id)
        suffix = template_suffix(test.template_b)
        self.assigned.append((gid, suffix))
        logger.info("Product %s assigned to variant template %s", gid, suffix or "default")
