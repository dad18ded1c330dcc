from __future__ import annotations

import logging
from typing import Any, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from kirana_store.models.product import Product, ProductVariant
from kirana_store.models.product_category import ProductCategory
from utils.slug import sku_token

logger = logging.getLogger(__name__)

BULK_DEFAULT_STOCK = 100


def list_active_categories(db: Session) -> list[ProductCategory]:
    return (
        db.query(ProductCategory)
        .filter(ProductCategory.is_active.is_(True))
        .order_by(ProductCategory.sort_order.asc(), ProductCategory.name.asc())
        .all()
    )


def get_active_category(db: Session, category_id: int) -> ProductCategory | None:
    return (
        db.query(ProductCategory)
        .filter(ProductCategory.id == category_id, ProductCategory.is_active.is_(True))
        .first()
    )


def list_active_products(db: Session, category_id: int | None = None) -> list[Product]:
    query = db.query(Product).filter(Product.is_active.is_(True))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    return query.order_by(Product.base_name.asc()).all()


def get_active_product(db: Session, product_id: int) -> Product | None:
    return db.query(Product).filter(Product.id == product_id, Product.is_active.is_(True)).first()


def list_available_variants(db: Session, product_id: int) -> list[ProductVariant]:
    return (
        db.query(ProductVariant)
        .filter(
            ProductVariant.product_id == product_id,
            ProductVariant.is_active.is_(True),
            ProductVariant.stock_quantity > 0,
        )
        .order_by(ProductVariant.price.asc())
        .all()
    )


def get_active_variant(db: Session, variant_id: int) -> ProductVariant | None:
    return (
        db.query(ProductVariant)
        .join(Product, Product.id == ProductVariant.product_id)
        .filter(
            ProductVariant.id == variant_id,
            ProductVariant.is_active.is_(True),
            Product.is_active.is_(True),
        )
        .first()
    )


def list_products_with_variants(db: Session) -> list[Product]:
    return (
        db.query(Product)
        .options(selectinload(Product.variants))
        .filter(Product.is_active.is_(True))
        .order_by(Product.base_name.asc())
        .all()
    )


def generate_sku(base_name: str, weight_label: str) -> str:
    name_part = sku_token(base_name, max_length=12, fallback="ITEM")
    weight_part = sku_token(weight_label, fallback="STD")
    return f"{name_part}-{weight_part}"


def _unique_sku(db: Session, candidate: str, reserved: set[str]) -> str:
    sku = candidate
    suffix = 2
    while sku in reserved or db.query(ProductVariant.id).filter(ProductVariant.sku_code == sku).first():
        sku = f"{candidate}-{suffix}"
        suffix += 1
    reserved.add(sku)
    return sku


def _add_product(
    db: Session,
    data: dict[str, Any],
    *,
    default_stock: int,
    generate_skus: bool,
    reserved_skus: set[str],
) -> Product:
    product = Product(
        base_name=data["base_name"],
        description=data.get("description"),
        image_url=data.get("image_url"),
        category_id=data.get("category_id"),
        is_active=True,
    )
    db.add(product)
    db.flush()

    for variant in data.get("variants") or []:
        sku = variant.get("sku")
        if not sku and generate_skus:
            sku = _unique_sku(db, generate_sku(product.base_name, variant["weight"]), reserved_skus)
        stock = variant.get("stock")
        db.add(
            ProductVariant(
                product_id=product.id,
                weight_label=variant["weight"],
                price=variant["price"],
                stock_quantity=default_stock if stock is None else stock,
                sku_code=sku,
            )
        )
    return product


def create_product(db: Session, data: dict[str, Any]) -> Product:
    """Creates a product and its variants in one transaction."""
    try:
        product = _add_product(db, data, default_stock=0, generate_skus=False, reserved_skus=set())
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(product)
    return product


def bulk_import_products(db: Session, items: Iterable[dict[str, Any]]) -> int:
    """Imports every product or none. Variants default to stock 100 and a generated SKU."""
    count = 0
    reserved: set[str] = set()
    try:
        for data in items:
            _add_product(db, data, default_stock=BULK_DEFAULT_STOCK, generate_skus=True, reserved_skus=reserved)
            count += 1
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info("bulk product import count=%s", count)
    return count
