# products/models.py
from __future__ import annotations

import uuid
from decimal import Decimal
from pathlib import PurePosixPath

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.text import slugify


class Product(models.Model):
    """
    A downloadable 3D model listing.

    file_path is relative to DOWNLOAD_STORAGE_ROOT (e.g.
    "/models/free/flexi-rex-v1.stl"); it is never exposed to clients. The
    public download name is built from slug + the file's extension.
    The path is percent-decoded until stable (at most three rounds) before
    it is resolved, so a literal "%" cannot appear in a stored file name.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    title = models.CharField(max_length=160)
    slug = models.SlugField(max_length=180, unique=True, blank=True)

    short_description = models.CharField(max_length=280, blank=True)
    description = models.TextField(blank=True)

    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    is_free = models.BooleanField(default=False)

    file_path = models.CharField(
        max_length=500,
        help_text=(
            "Path of the downloadable file relative to the protected storage root. "
            "Percent-escapes are decoded (up to three times), so file names must not contain \"%\"."
        ),
    )

    download_count = models.PositiveIntegerField(default=0)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["is_active", "created_at"], name="products_pr_is_acti_6b1f0e_idx"),
            models.Index(fields=["is_free", "is_active"], name="products_pr_is_free_2c9a4d_idx"),
        ]
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.title} ({'free' if self.is_free else 'paid'})"

    @classmethod
    def generate_unique_slug(cls, *, title: str, max_length: int = 180, exclude_pk=None) -> str:
        """
        Slug from title with numeric suffixes on collision: cup, cup-2, cup-3, ...
        """
        base = slugify(title) or "item"
        base = base[:max_length].strip("-") or "item"

        qs = cls.objects.all()
        if exclude_pk is not None:
            qs = qs.exclude(pk=exclude_pk)

        if not qs.filter(slug=base).exists():
            return base

        # Reserve room for "-NNNN"
        room = max(1, max_length - 6)
        base_trim = base[:room].strip("-") or "item"

        counter = 2
        while True:
            candidate = f"{base_trim}-{counter}"
            if not qs.filter(slug=candidate).exists():
                return candidate
            counter += 1

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = Product.generate_unique_slug(title=(self.title or "").strip(), exclude_pk=self.pk)
        super().save(*args, **kwargs)

    def clean(self):
        if self.is_free:
            self.price = Decimal("0.00")
        if not self.is_free and self.price <= Decimal("0.00"):
            raise ValidationError({"price": "Price must be greater than $0.00 unless the item is marked free."})
        if not (self.file_path or "").strip():
            raise ValidationError({"file_path": "A downloadable file path is required."})

    @property
    def display_price(self) -> str:
        return "Free" if self.is_free else f"${self.price:,.2f}"

    @property
    def file_extension(self) -> str:
        # ".stl", ".zip", ... (empty when the stored path has none)
        return PurePosixPath((self.file_path or "").replace("\\", "/")).suffix.lower()
