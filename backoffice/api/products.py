from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from backoffice.api.auth import get_current_user
from backoffice.database import get_db
from backoffice.models.user import User
from backoffice.schemas.product import (
    AttributeTemplateCreate,
    AttributeTemplateOut,
    AttributeTemplateUpdate,
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    ProductCreate,
    ProductOut,
    ProductUpdate,
    VariantCreate,
    VariantOut,
    VariantUpdate,
)
from backoffice.schemas.stock import StockLevelOut
from backoffice.services import product_service, stock_service

router = APIRouter(prefix="/products", tags=["Products"])
categories_router = APIRouter(prefix="/categories", tags=["Categories"])
attributes_router = APIRouter(prefix="/attribute-templates", tags=["Attribute Templates"])


# --- Products ---

@router.post("", response_model=ProductOut, status_code=201)
def create_product(data: ProductCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return product_service.create_product(db, data)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("", response_model=list[ProductOut])
def list_products(
    skip: int = 0,
    limit: int = 100,
    category_id: int | None = None,
    status: str | None = None,
    search: str | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return product_service.list_products(
        db, skip=skip, limit=limit, category_id=category_id, status=status, search=search
    )


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    product = product_service.get_product(db, product_id)
    if not product:
        raise HTTPException(404, "Product not found")
    return product


@router.patch("/{product_id}", response_model=ProductOut)
def update_product(
    product_id: int, data: ProductUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    try:
        product = product_service.update_product(db, product_id, data)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not product:
        raise HTTPException(404, "Product not found")
    return product


@router.get("/{product_id}/stock", response_model=list[StockLevelOut])
def product_stock(product_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not product_service.get_product(db, product_id):
        raise HTTPException(404, "Product not found")
    return stock_service.list_stock_levels(db, product_id=product_id)


# --- Variants ---

@router.post("/{product_id}/variants", response_model=VariantOut, status_code=201)
def create_variant(
    product_id: int, data: VariantCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    try:
        variant = product_service.create_variant(db, product_id, data)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not variant:
        raise HTTPException(404, "Product not found")
    return variant


@router.get("/{product_id}/variants", response_model=list[VariantOut])
def list_variants(product_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    product = product_service.get_product(db, product_id)
    if not product:
        raise HTTPException(404, "Product not found")
    return product.variants


@router.patch("/variants/{variant_id}", response_model=VariantOut)
def update_variant(
    variant_id: int, data: VariantUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    variant = product_service.update_variant(db, variant_id, data)
    if not variant:
        raise HTTPException(404, "Variant not found")
    return variant


@router.delete("/variants/{variant_id}", status_code=204)
def delete_variant(variant_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not product_service.delete_variant(db, variant_id):
        raise HTTPException(404, "Variant not found")


# --- Categories ---

@categories_router.post("", response_model=CategoryOut, status_code=201)
def create_category(data: CategoryCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return product_service.create_category(db, data)
    except ValueError as e:
        raise HTTPException(400, str(e))


@categories_router.get("", response_model=list[CategoryOut])
def list_categories(active_only: bool = False, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return product_service.list_categories(db, active_only=active_only)


@categories_router.get("/{category_id}", response_model=CategoryOut)
def get_category(category_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    category = product_service.get_category(db, category_id)
    if not category:
        raise HTTPException(404, "Category not found")
    return category


@categories_router.patch("/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int, data: CategoryUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    try:
        category = product_service.update_category(db, category_id, data)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not category:
        raise HTTPException(404, "Category not found")
    return category


@categories_router.delete("/{category_id}", status_code=204)
def delete_category(category_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        deleted = product_service.delete_category(db, category_id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not deleted:
        raise HTTPException(404, "Category not found")


# --- Attribute templates ---

@attributes_router.post("", response_model=AttributeTemplateOut, status_code=201)
def create_attribute_template(
    data: AttributeTemplateCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    try:
        return product_service.create_attribute_template(db, data)
    except ValueError as e:
        raise HTTPException(400, str(e))


@attributes_router.get("", response_model=list[AttributeTemplateOut])
def list_attribute_templates(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return product_service.list_attribute_templates(db)


@attributes_router.patch("/{template_id}", response_model=AttributeTemplateOut)
def update_attribute_template(
    template_id: int,
    data: AttributeTemplateUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    template = product_service.update_attribute_template(db, template_id, data)
    if not template:
        raise HTTPException(404, "Attribute template not found")
    return template


@attributes_router.delete("/{template_id}", status_code=204)
def delete_attribute_template(template_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not product_service.delete_attribute_template(db, template_id):
        raise HTTPException(404, "Attribute template not found")
