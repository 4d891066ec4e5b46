"""
Seed the product catalog with the standard building materials.
"""
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from catalog.choices import ProductCategory
from catalog.models import Product

PRODUCTS = [
    {
        "name": "Premium Cement",
        "category": ProductCategory.CEMENT,
        "description": "High quality construction cement for all your building needs",
        "image": "images/Cement.webp",
        "price": Decimal("12.99"),
        "features": ["50kg bags", "Fast setting", "High durability"],
    },
    {
        "name": "Quality Gravel",
        "category": ProductCategory.GRAVEL,
        "description": "Washed and graded gravel for construction",
        "image": "images/Gravel.webp",
        "price": Decimal("8.50"),
        "features": ["20mm size", "Clean washed", "Excellent drainage"],
    },
    {
        "name": "Fine Sand",
        "category": ProductCategory.SAND,
        "description": "Fine construction sand for masonry work",
        "image": "images/Sand.webp",
        "price": Decimal("6.75"),
        "features": ["River sand", "Well graded", "No impurities"],
    },
    {
        "name": "Solid Concrete Block",
        "category": ProductCategory.CONCRETE_BLOCKS,
        "description": "Durable concrete blocks for construction",
        "image": "images/SolidBlock.webp",
        "price": Decimal("2.25"),
        "features": ["9x18x36 cm", "High strength", "Weather resistant"],
    },
]


class Command(BaseCommand):
    help = "Seed the product catalog with sample building materials"

    def add_arguments(self, parser):
        parser.add_argument(
            "--clear",
            action="store_true",
            help="Deactivate all existing products before seeding.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if options["clear"]:
            # Quote items protect their products from deletion.
            retired = Product.objects.filter(is_active=True).update(is_active=False)
            self.stdout.write(f"Deactivated {retired} existing product(s).")

        created = 0
        for data in PRODUCTS:
            _, was_created = Product.objects.update_or_create(
                name=data["name"],
                defaults={**data, "is_active": True},
            )
            created += int(was_created)

        self.stdout.write(
            self.style.SUCCESS(f"Catalog seeded: {created} created, {len(PRODUCTS) - created} updated.")
        )
