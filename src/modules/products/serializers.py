"""Product read serializers (the catalog API is read-only)."""

from __future__ import annotations

from rest_framework import serializers

from modules.products.models import Product, ProductVariant


class ProductVariantSerializer(serializers.ModelSerializer):
    on_sale = serializers.SerializerMethodField()

    class Meta:
        model = ProductVariant
        fields = ["id", "size", "price", "start_date", "end_date", "on_sale"]
        read_only_fields = fields

    def get_on_sale(self, obj: ProductVariant) -> bool:
        return obj.is_on_sale()


class ProductSerializer(serializers.ModelSerializer):
    variants = ProductVariantSerializer(many=True, read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "sku",
            "name",
            "description",
            "base_price",
            "quantity",
            "status",
            "variants",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
