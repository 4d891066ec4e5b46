"""
Catalog lookups used by quote intake.
"""
from catalog.models import Product


def product_exists(product_id) -> bool:
    """True if an active product with this id exists."""
    return Product.objects.filter(pk=product_id, is_active=True).exists()


def missing_product_ids(product_ids) -> list:
    """
    Return the ids from product_ids that do not resolve to an active product,
    in first-seen order. One query regardless of how many ids are given.
    """
    wanted = list(dict.fromkeys(product_ids))
    found = set(
        Product.objects.filter(pk__in=wanted, is_active=True).values_list("pk", flat=True)
    )
    return [pk for pk in wanted if pk not in found]
