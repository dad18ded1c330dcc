from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kirana_store.core.database import get_db
from kirana_store.models.product_category import ProductCategory
from kirana_store.services.catalog import list_active_categories

router = APIRouter(prefix="/api/categories", tags=["categories"])


class CategoryOut(BaseModel):
    id: int
    name: str
    sort_order: int
    is_active: bool
    created_at: Optional[str] = None


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    sort_order: int = 0
    is_active: bool = True


def _category_to_dict(category: ProductCategory) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "sort_order": category.sort_order,
        "is_active": category.is_active,
        "created_at": category.created_at.isoformat() if category.created_at else None,
    }


@router.get("", response_model=List[CategoryOut])
def list_categories(db: Session = Depends(get_db)):
    return [_category_to_dict(category) for category in list_active_categories(db)]


@router.post("", response_model=CategoryOut, status_code=201)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db)):
    category = ProductCategory(
        name=payload.name.strip(),
        sort_order=payload.sort_order,
        is_active=payload.is_active,
    )
    try:
        db.add(category)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise HTTPException(status_code=500, detail="Failed to create category")
    db.refresh(category)
    return _category_to_dict(category)
