"""
Integration tests for the public catalog, reviews and catalog administration.
"""
from __future__ import annotations

import pytest
import pytest_asyncio

from storefront.authz import ROLE_ADMIN, CurrentUser
from storefront.models import (
    ORDER_PAID,
    ORDER_PENDING,
    Brand,
    Category,
    Order,
    OrderLine,
    Product,
    Review,
    Size,
)

ADMIN = CurrentUser(id="admin-1", email="admin@example.com", role=ROLE_ADMIN)


@pytest_asyncio.fixture
async def catalog(db_factory):
    async with db_factory() as session:
        session.add_all([Category(id=1, name="Fútbol"), Category(id=2, name="Running")])
        session.add_all([Brand(id=1, name="Adidas"), Brand(id=2, name="Nike")])
        session.add_all([Size(id=1, kind="ropa", value="M"), Size(id=2, kind="calzado", value="42")])
        session.add_all(
            [
                Product(id=1, name="Balón Pro", price=90000, image_url="b.png", stock=5, category_id=1, brand_id=1),
                Product(id=2, name="Balón Mini", price=30000, image_url="m.png", stock=5, category_id=1, brand_id=2),
                Product(id=3, name="Tenis Run", price=250000, image_url="t.png", stock=2, category_id=2, brand_id=2, size_id=2),
            ]
        )
        session.add_all(
            [
                Review(product_id=1, user_id="u-a", rating=5),
                Review(product_id=1, user_id="u-b", rating=4),
            ]
        )
        await session.commit()


async def _order_for(db_factory, user_id, product_id, status):
    async with db_factory() as session:
        session.add(
            Order(
                user_id=user_id,
                shipping_address="Calle 1",
                contact_phone="300",
                status=status,
                total_amount=90000,
                currency="cop",
                lines=[OrderLine(product_id=product_id, quantity=1, unit_price=90000)],
            )
        )
        await session.commit()


# ── Public reads ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_products_with_rating_and_relations(client, catalog):
    resp = await client.get("/api/products")

    assert resp.status_code == 200
    products = {p["id"]: p for p in resp.json()}
    assert set(products) == {1, 2, 3}
    assert products[1]["average_rating"] == pytest.approx(4.5)
    assert products[2]["average_rating"] == 0.0
    assert products[1]["category"] == {"id": 1, "name": "Fútbol"}
    assert products[3]["brand"] == {"id": 2, "name": "Nike"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "params,expected",
    [
        ({"search": "balón"}, {1, 2}),
        ({"category_id": 2}, {3}),
        ({"brand_id": 2}, {2, 3}),
        ({"max_price": 90000}, {1, 2}),
        ({"brand_id": 2, "max_price": 100000}, {2}),
        ({"id_categoria": 2}, {3}),
        ({"id_marca": 1}, {1}),
        ({"id_marca": 2, "max_precio": 100000}, {2}),
    ],
)
async def test_list_products_filters(client, catalog, params, expected):
    resp = await client.get("/api/products", params=params)

    assert resp.status_code == 200
    assert {p["id"] for p in resp.json()} == expected


@pytest.mark.asyncio
async def test_get_product_and_missing(client, catalog):
    ok = await client.get("/api/products/1")
    missing = await client.get("/api/products/999")

    assert ok.status_code == 200
    assert ok.json()["name"] == "Balón Pro"
    assert missing.status_code == 404
    assert missing.json()["error"] == "Producto no encontrado."


@pytest.mark.asyncio
async def test_categories_and_brands_are_public(client, as_user, catalog):
    as_user.user = None

    cats = await client.get("/api/categories")
    brands = await client.get("/api/brands")

    assert [c["name"] for c in cats.json()] == ["Fútbol", "Running"]
    assert [b["name"] for b in brands.json()] == ["Adidas", "Nike"]


@pytest.mark.asyncio
async def test_public_config(client):
    resp = await client.get("/api/config")

    assert resp.status_code == 200
    assert resp.json()["supabase_url"] == "https://project.supabase.test"


# ── Reviews ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_review_requires_paid_purchase(client, db_factory, catalog):
    await _order_for(db_factory, "user-1", 2, ORDER_PENDING)

    resp = await client.post("/api/reviews", json={"product_id": 2, "rating": 5})

    assert resp.status_code == 403
    assert "has comprado" in resp.json()["error"]


@pytest.mark.asyncio
async def test_review_after_paid_purchase(client, db_factory, catalog):
    await _order_for(db_factory, "user-1", 2, ORDER_PAID)

    created = await client.post(
        "/api/reviews", json={"product_id": 2, "rating": 3, "comment": "Buen balón"}
    )
    listed = await client.get("/api/reviews/2")

    assert created.status_code == 201
    assert created.json()["user_id"] == "user-1"
    assert [r["comment"] for r in listed.json()] == ["Buen balón"]


@pytest.mark.asyncio
async def test_review_for_unknown_product(client, catalog):
    resp = await client.post("/api/reviews", json={"product_id": 999, "rating": 5})

    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_review_rating_out_of_range(client, catalog):
    resp = await client.post("/api/reviews", json={"product_id": 1, "rating": 6})

    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_review_requires_authentication(client, as_user, catalog):
    as_user.user = None

    resp = await client.post("/api/reviews", json={"product_id": 1, "rating": 5})

    assert resp.status_code == 401


# ── Administration ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_admin_product_lifecycle(client, as_user, catalog):
    as_user.user = ADMIN
    body = {
        "name": "Guayos",
        "description": "Tacos de fútbol",
        "price": 180000,
        "image_url": "g.png",
        "stock": 4,
        "category_id": 1,
        "brand_id": 1,
    }

    created = await client.post("/api/products", json=body)
    product_id = created.json()["id"]
    updated = await client.put(f"/api/products/{product_id}", json={**body, "price": 170000})
    deleted = await client.delete(f"/api/products/{product_id}")
    gone = await client.get(f"/api/products/{product_id}")

    assert created.status_code == 201
    assert created.json()["category"]["name"] == "Fútbol"
    assert updated.status_code == 200
    assert updated.json()["price"] == 170000
    assert deleted.status_code == 204
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_update_missing_product_is_404(client, as_user, catalog):
    as_user.user = ADMIN

    resp = await client.put(
        "/api/products/999",
        json={"name": "X", "price": 1, "image_url": "x.png", "stock": 0},
    )

    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_product_with_orders_cannot_be_deleted(client, as_user, db_factory, catalog):
    await _order_for(db_factory, "user-1", 1, ORDER_PAID)
    as_user.user = ADMIN

    resp = await client.delete("/api/products/1")

    assert resp.status_code == 409
    assert (await client.get("/api/products/1")).status_code == 200


@pytest.mark.asyncio
async def test_admin_category_and_brand_crud(client, as_user, catalog):
    as_user.user = ADMIN

    cat = await client.post("/api/categories", json={"name": "Tenis"})
    renamed = await client.put(f"/api/categories/{cat.json()['id']}", json={"name": "Tenis de mesa"})
    brand = await client.post("/api/brands", json={"name": "Puma"})
    removed = await client.delete(f"/api/brands/{brand.json()['id']}")
    missing = await client.put("/api/brands/999", json={"name": "Nada"})

    assert cat.status_code == 201
    assert renamed.json()["name"] == "Tenis de mesa"
    assert brand.status_code == 201
    assert removed.status_code == 204
    assert missing.status_code == 404
    assert [b["name"] for b in (await client.get("/api/brands")).json()] == ["Adidas", "Nike"]


@pytest.mark.asyncio
async def test_empty_category_name_is_422(client, as_user):
    as_user.user = ADMIN

    resp = await client.post("/api/categories", json={"name": ""})

    assert resp.status_code == 422


# ── Sizes and the browser client's Spanish names ─────────────────────────────

@pytest.mark.asyncio
async def test_sizes_are_public_under_both_paths(client, as_user, catalog):
    as_user.user = None

    english = await client.get("/api/sizes")
    spanish = await client.get("/api/tallas")

    assert english.status_code == 200
    assert english.json() == [
        {"id": 1, "kind": "ropa", "value": "M"},
        {"id": 2, "kind": "calzado", "value": "42"},
    ]
    assert spanish.json() == english.json()


@pytest.mark.asyncio
async def test_product_carries_its_size(client, catalog):
    resp = await client.get("/api/products/3")

    assert resp.json()["size_id"] == 2
    assert resp.json()["size"] == {"id": 2, "kind": "calzado", "value": "42"}


@pytest.mark.asyncio
async def test_admin_size_crud(client, as_user, catalog):
    as_user.user = ADMIN

    created = await client.post("/api/tallas", json={"tipo": "calzado", "valor": "43"})
    size_id = created.json()["id"]
    updated = await client.put(f"/api/sizes/{size_id}", json={"kind": "calzado", "value": "44"})
    missing = await client.put("/api/tallas/999", json={"tipo": "ropa", "valor": "S"})
    incomplete = await client.post("/api/sizes", json={"kind": "ropa"})
    deleted = await client.delete(f"/api/tallas/{size_id}")

    assert created.status_code == 201
    assert created.json()["value"] == "43"
    assert updated.json() == {"id": size_id, "kind": "calzado", "value": "44"}
    assert missing.status_code == 404
    assert incomplete.status_code == 422
    assert deleted.status_code == 204
    assert [s["id"] for s in (await client.get("/api/sizes")).json()] == [1, 2]


@pytest.mark.asyncio
async def test_customer_cannot_manage_sizes(client, catalog):
    resp = await client.post("/api/tallas", json={"tipo": "ropa", "valor": "L"})

    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_product_with_spanish_fields(client, as_user, catalog):
    as_user.user = ADMIN

    resp = await client.post(
        "/api/products",
        json={
            "nombre": "Camiseta",
            "descripcion": "Algodón",
            "precio": 45000,
            "imagen_url": "c.png",
            "stock": 9,
            "id_categoria": 2,
            "id_marca": 1,
            "id_talla": 1,
        },
    )

    assert resp.status_code == 201
    product = resp.json()
    assert product["name"] == "Camiseta"
    assert product["price"] == 45000
    assert (product["category_id"], product["brand_id"], product["size_id"]) == (2, 1, 1)
    assert product["size"]["value"] == "M"


@pytest.mark.asyncio
async def test_spanish_category_and_brand_paths(client, as_user, catalog):
    as_user.user = ADMIN

    cat = await client.post("/api/categorias", json={"nombre": "Tenis"})
    renamed = await client.put(f"/api/categorias/{cat.json()['id']}", json={"nombre": "Pádel"})
    brands = await client.get("/api/marcas")
    removed = await client.delete("/api/marcas/2")

    assert cat.status_code == 201
    assert renamed.json()["name"] == "Pádel"
    assert [b["name"] for b in brands.json()] == ["Adidas", "Nike"]
    assert removed.status_code == 204


@pytest.mark.asyncio
async def test_review_with_spanish_fields(client, db_factory, catalog):
    await _order_for(db_factory, "user-1", 1, ORDER_PAID)

    resp = await client.post(
        "/api/reviews",
        json={"id_producto": 1, "puntuacion": 4, "comentario": "Muy bueno"},
    )

    assert resp.status_code == 201
    assert (resp.json()["rating"], resp.json()["comment"]) == (4, "Muy bueno")
