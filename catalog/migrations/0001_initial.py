from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when the record was created.",
                        verbose_name="created at",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when the record was last updated.",
                        verbose_name="updated at",
                    ),
                ),
                ("name", models.CharField(help_text="Display name of the product.", max_length=255, verbose_name="name")),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("concrete-blocks", "Concrete blocks"),
                            ("sand", "Sand"),
                            ("cement", "Cement"),
                            ("gravel", "Gravel"),
                            ("solid-block", "Solid block"),
                        ],
                        db_index=True,
                        help_text="Product category.",
                        max_length=30,
                        verbose_name="category",
                    ),
                ),
                ("description", models.TextField(help_text="Product description.", verbose_name="description")),
                (
                    "image",
                    models.CharField(
                        help_text="Static path of the product image, e.g. images/Cement.webp.",
                        max_length=255,
                        verbose_name="image",
                    ),
                ),
                (
                    "price",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Indicative unit price; final pricing is quoted.",
                        max_digits=12,
                        null=True,
                        verbose_name="price",
                    ),
                ),
                (
                    "features",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Short selling points, e.g. ['50kg bags', 'Fast setting'].",
                        verbose_name="features",
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        default=True,
                        help_text="Inactive products are hidden and cannot be quoted.",
                        verbose_name="is active",
                    ),
                ),
            ],
            options={
                "verbose_name": "product",
                "verbose_name_plural": "products",
                "ordering": ["-created_at"],
            },
        ),
    ]
