"""Tests for catalog app."""
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from rest_framework.test import APIClient

from catalog.choices import ProductCategory
from catalog.models import Product
from catalog.services import missing_product_ids, product_exists


class CatalogServiceTests(TestCase):

    def setUp(self):
        self.cement = Product.objects.create(
            name="Premium Cement",
            category=ProductCategory.CEMENT,
            description="High quality construction cement",
            image="images/Cement.webp",
        )
        self.retired = Product.objects.create(
            name="Old Gravel",
            category=ProductCategory.GRAVEL,
            description="No longer stocked",
            image="images/Gravel.webp",
            is_active=False,
        )

    def test_product_exists(self):
        self.assertTrue(product_exists(self.cement.pk))
        self.assertFalse(product_exists(self.retired.pk))
        self.assertFalse(product_exists(999999))

    def test_missing_product_ids_keeps_order_and_dedupes(self):
        missing = missing_product_ids([999999, self.cement.pk, self.retired.pk, 999999])
        self.assertEqual(missing, [999999, self.retired.pk])

    def test_missing_product_ids_empty(self):
        self.assertEqual(missing_product_ids([self.cement.pk]), [])


class ProductAPITestCase(TestCase):
    """Public catalog endpoints."""

    def setUp(self):
        self.client = APIClient()
        call_command("seed_catalog", verbosity=0, stdout=StringIO())
        self.cement = Product.objects.get(name="Premium Cement")

    def test_list_products(self):
        response = self.client.get("/api/v1/products/")
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data["success"])
        self.assertEqual(data["count"], 4)
        self.assertIn("createdAt", data["data"][0])

    def test_filter_and_search(self):
        data = self.client.get("/api/v1/products/", {"category": "sand"}).json()
        self.assertEqual([p["name"] for p in data["data"]], ["Fine Sand"])
        data = self.client.get("/api/v1/products/", {"search": "gravel"}).json()
        self.assertEqual([p["name"] for p in data["data"]], ["Quality Gravel"])

    def test_products_by_category(self):
        response = self.client.get("/api/v1/products/category/cement/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"][0]["name"], "Premium Cement")

    def test_empty_category_is_404(self):
        response = self.client.get("/api/v1/products/category/solid-block/")
        self.assertEqual(response.status_code, 404)
        self.assertFalse(response.json()["success"])

    def test_retrieve_product(self):
        response = self.client.get(f"/api/v1/products/{self.cement.pk}/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["features"][0], "50kg bags")

    def test_retrieve_missing_product(self):
        response = self.client.get("/api/v1/products/999999/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Product not found")

    def test_inactive_products_hidden(self):
        Product.objects.filter(pk=self.cement.pk).update(is_active=False)
        self.assertEqual(self.client.get(f"/api/v1/products/{self.cement.pk}/").status_code, 404)
        self.assertEqual(self.client.get("/api/v1/products/").json()["count"], 3)


class SeedCatalogCommandTests(TestCase):

    def test_seed_is_idempotent(self):
        call_command("seed_catalog", stdout=StringIO())
        call_command("seed_catalog", stdout=StringIO())
        self.assertEqual(Product.objects.count(), 4)

    def test_clear_deactivates_existing(self):
        Product.objects.create(
            name="Discontinued Block",
            category=ProductCategory.SOLID_BLOCK,
            description="Old stock",
            image="images/SolidBlock.webp",
        )
        call_command("seed_catalog", "--clear", stdout=StringIO())
        self.assertFalse(Product.objects.get(name="Discontinued Block").is_active)
        self.assertEqual(Product.objects.filter(is_active=True).count(), 4)
