"""Choice enums for catalog app."""

from django.db import models


class ProductCategory(models.TextChoices):
    CONCRETE_BLOCKS = "concrete-blocks", "Concrete blocks"
    SAND = "sand", "Sand"
    CEMENT = "cement", "Cement"
    GRAVEL = "gravel", "Gravel"
    SOLID_BLOCK = "solid-block", "Solid block"
