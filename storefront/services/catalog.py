"""
Catalog queries and admin mutations.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import exists, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.errors import Conflict, NotFound
from storefront.models import (
    ORDER_PAID,
    Base,
    Order,
    OrderLine,
    Product,
    Review,
)
from storefront.schemas import ProductIn, ProductOut

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Base)


async def _average_ratings(
    session: AsyncSession, product_ids: Sequence[int]
) -> Dict[int, float]:
    if not product_ids:
        return {}
    rows = await session.execute(
        select(Review.product_id, func.avg(Review.rating))
        .where(Review.product_id.in_(product_ids))
        .group_by(Review.product_id)
    )
    return {pid: float(avg) for pid, avg in rows}


def _with_rating(product: Product, ratings: Dict[int, float]) -> ProductOut:
    return ProductOut.model_validate(product).model_copy(
        update={"average_rating": ratings.get(product.id, 0.0)}
    )


async def list_products(
    session: AsyncSession,
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    brand_id: Optional[int] = None,
    max_price: Optional[int] = None,
) -> List[ProductOut]:
    stmt = select(Product).order_by(Product.id)
    if search:
        stmt = stmt.where(Product.name.ilike(f"%{search}%"))
    if category_id is not None:
        stmt = stmt.where(Product.category_id == category_id)
    if brand_id is not None:
        stmt = stmt.where(Product.brand_id == brand_id)
    if max_price is not None:
        stmt = stmt.where(Product.price <= max_price)

    products = (await session.execute(stmt)).scalars().all()
    ratings = await _average_ratings(session, [p.id for p in products])
    return [_with_rating(p, ratings) for p in products]


async def get_product(session: AsyncSession, product_id: int) -> ProductOut:
    product = await session.get(Product, product_id)
    if product is None:
        raise NotFound("Producto no encontrado.")
    ratings = await _average_ratings(session, [product.id])
    return _with_rating(product, ratings)


async def create_product(session: AsyncSession, data: ProductIn) -> Product:
    product = Product(**data.model_dump())
    session.add(product)
    await session.flush()
    await session.refresh(product)
    logger.info("Product %s created: %s", product.id, product.name)
    return product


async def update_product(session: AsyncSession, product_id: int, data: ProductIn) -> Product:
    product = await session.get(Product, product_id)
    if product is None:
        raise NotFound("Producto no encontrado para actualizar.")
    for field, value in data.model_dump().items():
        setattr(product, field, value)
    await session.flush()
    await session.refresh(product)
    return product


async def delete_row(session: AsyncSession, model: Type[T], row_id: int) -> None:
    """Delete a catalog row; rows still referenced by orders cannot go."""
    row = await session.get(model, row_id)
    if row is None:
        raise NotFound()
    if model is Product:
        referenced = (
            await session.execute(select(exists().where(OrderLine.product_id == row_id)))
        ).scalar()
        if referenced:
            raise Conflict("El producto tiene pedidos asociados y no puede eliminarse.")
    try:
        await session.delete(row)
        await session.flush()
    except IntegrityError as exc:
        raise Conflict(details=str(exc.orig)) from exc


async def list_rows(session: AsyncSession, model: Type[T]) -> List[T]:
    """All rows of a lookup table (categories, brands, sizes) by id."""
    return list((await session.execute(select(model).order_by(model.id))).scalars())


async def create_row(session: AsyncSession, model: Type[T], **fields: Any) -> T:
    row = model(**fields)
    session.add(row)
    await session.flush()
    logger.info("%s %s created", model.__tablename__, row.id)
    return row


async def update_row(session: AsyncSession, model: Type[T], row_id: int, **fields: Any) -> T:
    row = await session.get(model, row_id)
    if row is None:
        raise NotFound()
    for field, value in fields.items():
        setattr(row, field, value)
    await session.flush()
    return row


async def user_bought_product(session: AsyncSession, user_id: str, product_id: int) -> bool:
    """True when one of the user's paid orders contains the product."""
    stmt = select(
        exists()
        .where(OrderLine.order_id == Order.id)
        .where(
            Order.user_id == user_id,
            Order.status == ORDER_PAID,
            OrderLine.product_id == product_id,
        )
    )
    return bool((await session.execute(stmt)).scalar())
