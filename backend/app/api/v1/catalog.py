from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.auth import require_admin
from app.core.commission_table import apply_commission_structure, parse_structure
from app.db.session import get_db
from app.models.product import Product
from app.models.user import User
from app.schemas.catalog import (
    CommissionStructureResponse,
    CommissionStructureUpdate,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
)

router = APIRouter(prefix="/products", tags=["catalog"])

PRICE_FIELDS = {"price", "cost"}


async def _get_product_or_404(db: AsyncSession, product_id: uuid.UUID) -> Product:
    product = await db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def _ensure_can_manage(product: Product, profile: User) -> None:
    # shopkeeper admins manage their own products; super admins manage all
    if profile.is_super_admin or product.shopkeeper_id in (None, profile.id):
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Product belongs to another shopkeeper")


def _structure_response(product: Product) -> CommissionStructureResponse:
    return CommissionStructureResponse(
        product_id=product.id,
        price=product.price,
        cost=product.cost,
        available_margin=product.price - product.cost,
        total_commission=product.total_commission,
        profit_margin=product.profit_margin,
        commission_structure=[
            {"level": e.level, "amount": e.amount} for e in parse_structure(product.commission_structure)
        ],
    )


@router.get("", response_model=List[ProductResponse])
async def list_products(
    category: Optional[str] = Query(default=None, max_length=100),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Product).where(Product.is_active.is_(True))
    if category:
        stmt = stmt.where(Product.category == category)
    stmt = stmt.order_by(Product.created_at.desc()).limit(limit).offset(offset)

    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/meta/categories", response_model=List[str])
async def list_categories(db: AsyncSession = Depends(get_db)):
    """Distinct categories of active products, sorted."""
    stmt = select(Product.category).where(Product.is_active.is_(True)).distinct().order_by(Product.category)
    return (await db.execute(stmt)).scalars().all()


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(require_admin),
):
    data = payload.model_dump(exclude={"commission_structure", "price", "cost"})
    product = Product(id=uuid.uuid4(), shopkeeper_id=profile.id, is_active=True, **data)

    apply_commission_structure(
        product,
        [e.model_dump() for e in payload.commission_structure],
        price=payload.price,
        cost=payload.cost,
    )

    db.add(product)
    await db.commit()
    await db.refresh(product)
    return product


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    product = await _get_product_or_404(db, product_id)
    if not product.is_active:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(require_admin),
):
    product = await _get_product_or_404(db, product_id)
    _ensure_can_manage(product, profile)

    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update.")

    if PRICE_FIELDS & data.keys():
        # the existing table must still fit the new margin
        apply_commission_structure(
            product,
            product.commission_structure,
            price=data.get("price"),
            cost=data.get("cost"),
        )

    for field, value in data.items():
        if field not in PRICE_FIELDS:
            setattr(product, field, value)

    await db.commit()
    await db.refresh(product)
    return product


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_product(
    product_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(require_admin),
):
    """Orders and commissions reference products, so removal is a soft delete."""
    product = await _get_product_or_404(db, product_id)
    _ensure_can_manage(product, profile)

    product.is_active = False
    await db.commit()
    return None


@router.get("/{product_id}/commission", response_model=CommissionStructureResponse)
async def get_commission_structure(
    product_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(require_admin),
):
    product = await _get_product_or_404(db, product_id)
    return _structure_response(product)


@router.put("/{product_id}/commission", response_model=CommissionStructureResponse)
async def set_commission_structure(
    product_id: uuid.UUID,
    payload: CommissionStructureUpdate,
    db: AsyncSession = Depends(get_db),
    profile: User = Depends(require_admin),
):
    """
    Replace the per-level table. Rejected with COMMISSION_EXCEEDS_PROFIT when
    the levels sum to more than price - cost; the stored table is unchanged.
    """
    product = await _get_product_or_404(db, product_id)
    _ensure_can_manage(product, profile)

    apply_commission_structure(
        product,
        [e.model_dump() for e in payload.commission_structure],
        price=payload.price,
        cost=payload.cost,
    )

    await db.commit()
    await db.refresh(product)
    return _structure_response(product)
