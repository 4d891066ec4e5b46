from django.db import models
from django.utils.translation import gettext_lazy as _

from common.models import TimeStampedModel

from .choices import ProductCategory


class Product(TimeStampedModel):
    """Building material offered for quotation."""

    name = models.CharField(
        max_length=255,
        verbose_name=_("name"),
        help_text=_("Display name of the product."),
    )
    category = models.CharField(
        max_length=30,
        choices=ProductCategory.choices,
        db_index=True,
        verbose_name=_("category"),
        help_text=_("Product category."),
    )
    description = models.TextField(
        verbose_name=_("description"),
        help_text=_("Product description."),
    )
    image = models.CharField(
        max_length=255,
        verbose_name=_("image"),
        help_text=_("Static path of the product image, e.g. images/Cement.webp."),
    )
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name=_("price"),
        help_text=_("Indicative unit price; final pricing is quoted."),
    )
    features = models.JSONField(
        default=list,
        blank=True,
        verbose_name=_("features"),
        help_text=_("Short selling points, e.g. ['50kg bags', 'Fast setting']."),
    )
    is_active = models.BooleanField(
        default=True,
        verbose_name=_("is active"),
        help_text=_("Inactive products are hidden and cannot be quoted."),
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = _("product")
        verbose_name_plural = _("products")

    def __str__(self):
        return self.name
