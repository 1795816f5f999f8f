"""
Catalog endpoints.

Public:
GET    /api/config
GET    /api/products            ?search=&category_id=&brand_id=&max_price=
GET    /api/products/{id}
GET    /api/categories
GET    /api/brands
GET    /api/sizes
GET    /api/reviews/{product_id}
Customer:
POST   /api/reviews
Admin (manage_catalog):
POST   /api/products            PUT/DELETE /api/products/{id}
POST   /api/categories          PUT/DELETE /api/categories/{id}
POST   /api/brands              PUT/DELETE /api/brands/{id}
POST   /api/sizes               PUT/DELETE /api/sizes/{id}

The storefront's browser client still calls /api/categorias, /api/marcas and
/api/tallas and filters with id_categoria, id_marca and max_precio; those
names are accepted too.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.authz import Action, CurrentUser
from storefront.config import get_settings
from storefront.database import get_db
from storefront.deps import require
from storefront.errors import Forbidden, NotFound
from storefront.models import Brand, Category, Product, Review, Size
from storefront.schemas import (
    NamedIn,
    NamedOut,
    ProductIn,
    ProductOut,
    PublicConfig,
    ReviewIn,
    ReviewOut,
    SizeIn,
    SizeOut,
)
from storefront.services import catalog

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/api", tags=["catalog"])

manage_catalog = require(Action.MANAGE_CATALOG)


@router.get("/config", response_model=PublicConfig)
async def public_config() -> PublicConfig:
    return PublicConfig(
        supabase_url=settings.supabase_url,
        supabase_anon_key=settings.supabase_anon_key,
    )


# ── Products ─────────────────────────────────────────────────────────────────

@router.get("/products", response_model=List[ProductOut])
async def list_products(
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    brand_id: Optional[int] = None,
    max_price: Optional[int] = None,
    id_categoria: Optional[int] = Query(None, include_in_schema=False),
    id_marca: Optional[int] = Query(None, include_in_schema=False),
    max_precio: Optional[int] = Query(None, include_in_schema=False),
    db: AsyncSession = Depends(get_db),
) -> List[ProductOut]:
    return await catalog.list_products(
        db,
        search=search,
        category_id=category_id if category_id is not None else id_categoria,
        brand_id=brand_id if brand_id is not None else id_marca,
        max_price=max_price if max_price is not None else max_precio,
    )


@router.get("/products/{product_id}", response_model=ProductOut)
async def get_product(product_id: int, db: AsyncSession = Depends(get_db)) -> ProductOut:
    return await catalog.get_product(db, product_id)


@router.post("/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
async def create_product(
    body: ProductIn,
    _: CurrentUser = Depends(manage_catalog),
    db: AsyncSession = Depends(get_db),
) -> ProductOut:
    product = await catalog.create_product(db, body)
    return ProductOut.model_validate(product)


@router.put("/products/{product_id}", response_model=ProductOut)
async def update_product(
    product_id: int,
    body: ProductIn,
    _: CurrentUser = Depends(manage_catalog),
    db: AsyncSession = Depends(get_db),
) -> ProductOut:
    product = await catalog.update_product(db, product_id, body)
    return ProductOut.model_validate(product)


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int,
    _: CurrentUser = Depends(manage_catalog),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await catalog.delete_row(db, Product, product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Categories ───────────────────────────────────────────────────────────────

@router.get("/categories", response_model=List[NamedOut])
@router.get("/categorias", response_model=List[NamedOut], include_in_schema=False)
async def list_categories(db: AsyncSession = Depends(get_db)) -> List[NamedOut]:
    return [NamedOut.model_validate(r) for r in await catalog.list_rows(db, Category)]


@router.post("/categories", response_model=NamedOut, status_code=status.HTTP_201_CREATED)
@router.post(
    "/categorias", response_model=NamedOut, status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
async def create_category(
    body: NamedIn,
    _: CurrentUser = Depends(manage_catalog),
    db: AsyncSession = Depends(get_db),
) -> NamedOut:
    return NamedOut.model_validate(await catalog.create_row(db, Category, name=body.name))


@router.put("/categories/{category_id}", response_model=NamedOut)
@router.put("/categorias/{category_id}", response_model=NamedOut, include_in_schema=False)
async def rename_category(
    category_id: int,
    body: NamedIn,
    _: CurrentUser = Depends(manage_catalog),
    db: AsyncSession = Depends(get_db),
) -> NamedOut:
    return NamedOut.model_validate(
        await catalog.update_row(db, Category, category_id, name=body.name)
    )


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
@router.delete(
    "/categorias/{category_id}", status_code=status.HTTP_204_NO_CONTENT,
    include_in_schema=False,
)
async def delete_category(
    category_id: int,
    _: CurrentUser = Depends(manage_catalog),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await catalog.delete_row(db, Category, category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Brands ───────────────────────────────────────────────────────────────────

@router.get("/brands", response_model=List[NamedOut])
@router.get("/marcas", response_model=List[NamedOut], include_in_schema=False)
async def list_brands(db: AsyncSession = Depends(get_db)) -> List[NamedOut]:
    return [NamedOut.model_validate(r) for r in await catalog.list_rows(db, Brand)]


@router.post("/brands", response_model=NamedOut, status_code=status.HTTP_201_CREATED)
@router.post(
    "/marcas", response_model=NamedOut, status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
async def create_brand(
    body: NamedIn,
    _: CurrentUser = Depends(manage_catalog),
    db: AsyncSession = Depends(get_db),
) -> NamedOut:
    return NamedOut.model_validate(await catalog.create_row(db, Brand, name=body.name))


@router.put("/brands/{brand_id}", response_model=NamedOut)
@router.put("/marcas/{brand_id}", response_model=NamedOut, include_in_schema=False)
async def rename_brand(
    brand_id: int,
    body: NamedIn,
    _: CurrentUser = Depends(manage_catalog),
    db: AsyncSession = Depends(get_db),
) -> NamedOut:
    return NamedOut.model_validate(
        await catalog.update_row(db, Brand, brand_id, name=body.name)
    )


@router.delete("/brands/{brand_id}", status_code=status.HTTP_204_NO_CONTENT)
@router.delete(
    "/marcas/{brand_id}", status_code=status.HTTP_204_NO_CONTENT,
    include_in_schema=False,
)
async def delete_brand(
    brand_id: int,
    _: CurrentUser = Depends(manage_catalog),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await catalog.delete_row(db, Brand, brand_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Sizes ────────────────────────────────────────────────────────────────────

@router.get("/sizes", response_model=List[SizeOut])
@router.get("/tallas", response_model=List[SizeOut], include_in_schema=False)
async def list_sizes(db: AsyncSession = Depends(get_db)) -> List[SizeOut]:
    return [SizeOut.model_validate(r) for r in await catalog.list_rows(db, Size)]


@router.post("/sizes", response_model=SizeOut, status_code=status.HTTP_201_CREATED)
@router.post(
    "/tallas", response_model=SizeOut, status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
async def create_size(
    body: SizeIn,
    _: CurrentUser = Depends(manage_catalog),
    db: AsyncSession = Depends(get_db),
) -> SizeOut:
    return SizeOut.model_validate(
        await catalog.create_row(db, Size, kind=body.kind, value=body.value)
    )


@router.put("/sizes/{size_id}", response_model=SizeOut)
@router.put("/tallas/{size_id}", response_model=SizeOut, include_in_schema=False)
async def update_size(
    size_id: int,
    body: SizeIn,
    _: CurrentUser = Depends(manage_catalog),
    db: AsyncSession = Depends(get_db),
) -> SizeOut:
    return SizeOut.model_validate(
        await catalog.update_row(db, Size, size_id, kind=body.kind, value=body.value)
    )


@router.delete("/sizes/{size_id}", status_code=status.HTTP_204_NO_CONTENT)
@router.delete(
    "/tallas/{size_id}", status_code=status.HTTP_204_NO_CONTENT,
    include_in_schema=False,
)
async def delete_size(
    size_id: int,
    _: CurrentUser = Depends(manage_catalog),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await catalog.delete_row(db, Size, size_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Reviews ──────────────────────────────────────────────────────────────────

@router.get("/reviews/{product_id}", response_model=List[ReviewOut])
async def list_reviews(product_id: int, db: AsyncSession = Depends(get_db)) -> List[ReviewOut]:
    rows = (
        await db.execute(
            select(Review)
            .where(Review.product_id == product_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
        )
    ).scalars().all()
    return [ReviewOut.model_validate(r) for r in rows]


@router.post("/reviews", response_model=ReviewOut, status_code=status.HTTP_201_CREATED)
async def create_review(
    body: ReviewIn,
    user: CurrentUser = Depends(require(Action.WRITE_REVIEW)),
    db: AsyncSession = Depends(get_db),
) -> ReviewOut:
    if await db.get(Product, body.product_id) is None:
        raise NotFound("Producto no encontrado.")
    if not await catalog.user_bought_product(db, user.id, body.product_id):
        raise Forbidden("Solo puedes dejar una reseña si has comprado este producto.")

    review = Review(
        product_id=body.product_id,
        user_id=user.id,
        rating=body.rating,
        comment=body.comment,
    )
    db.add(review)
    await db.flush()
    await db.refresh(review)
    return ReviewOut.model_validate(review)
