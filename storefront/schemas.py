"""
Pydantic schemas for request/response validation.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ── Cart / orders ────────────────────────────────────────────────────────────

class CartEntry(BaseModel):
    """One cart line as the browser submits it; untrusted."""
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(..., alias="id_producto")
    quantity: int = Field(..., gt=0)
    unit_price: int = Field(..., gt=0, alias="precio")
    name: str = Field("", alias="nombre")
    image_url: Optional[str] = Field(None, alias="imagen_url")


class OrderCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: List[CartEntry] = []
    shipping_address: Optional[str] = Field(None, alias="direccion_envio")
    contact_phone: Optional[str] = Field(None, alias="telefono_contacto")
    notes: Optional[str] = Field(None, alias="notas")


class CheckoutRedirect(BaseModel):
    url: str


class OrderLineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    quantity: int
    unit_price: int


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: int
    method: str
    external_reference: str
    status: str
    created_at: datetime


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    shipping_address: str
    contact_phone: str
    notes: Optional[str] = None
    status: str
    total_amount: int
    currency: str
    created_at: datetime
    paid_at: Optional[datetime] = None


class OrderDetail(OrderOut):
    lines: List[OrderLineOut] = []
    payment: Optional[PaymentOut] = None


class WebhookAck(BaseModel):
    received: bool = True


# ── Catalog ──────────────────────────────────────────────────────────────────

class NamedIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, alias="nombre")


class NamedOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class SizeIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: str = Field(..., min_length=1, alias="tipo")
    value: str = Field(..., min_length=1, alias="valor")


class SizeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: str
    value: str


class ProductIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, alias="nombre")
    description: Optional[str] = Field(None, alias="descripcion")
    price: int = Field(..., gt=0, alias="precio")
    image_url: str = Field(..., min_length=1, alias="imagen_url")
    stock: int = Field(..., ge=0)
    category_id: Optional[int] = Field(None, alias="id_categoria")
    brand_id: Optional[int] = Field(None, alias="id_marca")
    size_id: Optional[int] = Field(None, alias="id_talla")


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    price: int
    image_url: str
    stock: int
    category_id: Optional[int] = None
    brand_id: Optional[int] = None
    size_id: Optional[int] = None
    category: Optional[NamedOut] = None
    brand: Optional[NamedOut] = None
    size: Optional[SizeOut] = None
    average_rating: float = 0.0


class ReviewIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(..., alias="id_producto")
    rating: int = Field(..., ge=1, le=5, alias="puntuacion")
    comment: Optional[str] = Field(None, alias="comentario")


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    user_id: str
    rating: int
    comment: Optional[str] = None
    created_at: datetime


# ── Misc ─────────────────────────────────────────────────────────────────────

class PublicConfig(BaseModel):
    supabase_url: str
    supabase_anon_key: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    db: str = "ok"
