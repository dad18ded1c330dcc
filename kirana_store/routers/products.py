import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kirana_store.core.database import get_db
from kirana_store.models.product import Product, ProductVariant
from kirana_store.services.catalog import bulk_import_products, create_product, list_products_with_variants

router = APIRouter(prefix="/api/products", tags=["products"])
logger = logging.getLogger(__name__)


class VariantIn(BaseModel):
    weight: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0)
    stock: Optional[int] = Field(None, ge=0)
    sku: Optional[str] = None


class ProductIn(BaseModel):
    base_name: str = Field(..., min_length=1)
    description: Optional[str] = None
    image_url: Optional[str] = None
    category_id: Optional[int] = None
    variants: List[VariantIn] = Field(default_factory=list)


class VariantOut(BaseModel):
    variant_id: int
    weight: str
    price: float
    stock: int
    sku: Optional[str] = None


class ProductOut(BaseModel):
    product_id: int
    base_name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    category_id: Optional[int] = None
    variants: List[VariantOut]


def _variant_to_dict(variant: ProductVariant) -> dict:
    return {
        "variant_id": variant.id,
        "weight": variant.weight_label,
        "price": float(variant.price),
        "stock": variant.stock_quantity,
        "sku": variant.sku_code,
    }


def _product_to_dict(product: Product) -> dict:
    return {
        "product_id": product.id,
        "base_name": product.base_name,
        "description": product.description,
        "image_url": product.image_url,
        "category_id": product.category_id,
        "variants": [_variant_to_dict(variant) for variant in product.variants],
    }


@router.get("", response_model=List[ProductOut])
def list_products(db: Session = Depends(get_db)):
    try:
        products = list_products_with_variants(db)
    except SQLAlchemyError:
        logger.exception("failed to fetch products")
        raise HTTPException(status_code=500, detail="Failed to fetch products")
    return [_product_to_dict(product) for product in products]


@router.post("", status_code=201)
def create_product_endpoint(payload: ProductIn, db: Session = Depends(get_db)):
    try:
        product = create_product(db, payload.model_dump())
    except SQLAlchemyError:
        logger.exception("failed to create product")
        raise HTTPException(status_code=500, detail="Failed to create product")
    return {"message": "Product created", "productId": product.id}


@router.post("/bulk")
def bulk_upload(payload: List[ProductIn], db: Session = Depends(get_db)):
    try:
        count = bulk_import_products(db, [item.model_dump() for item in payload])
    except SQLAlchemyError:
        logger.exception("bulk upload failed")
        raise HTTPException(status_code=500, detail="Bulk upload failed")
    return {"message": f"Successfully imported {count} products", "count": count}
