import re

from sqlalchemy.orm import Session

from backoffice.models.product import Product, ProductAttributeTemplate, ProductCategory, ProductVariant
from backoffice.schemas.product import (
    AttributeTemplateCreate,
    AttributeTemplateUpdate,
    CategoryCreate,
    CategoryUpdate,
    ProductCreate,
    ProductUpdate,
    VariantCreate,
    VariantUpdate,
)


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


# --- Categories ---

def create_category(db: Session, data: CategoryCreate) -> ProductCategory:
    slug = data.slug or slugify(data.name)
    if db.query(ProductCategory).filter(ProductCategory.slug == slug).first():
        raise ValueError(f"Category slug '{slug}' already exists")
    if data.parent_id and not get_category(db, data.parent_id):
        raise ValueError(f"Parent category {data.parent_id} not found")
    category = ProductCategory(**data.model_dump(exclude={"slug"}), slug=slug)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def get_category(db: Session, category_id: int) -> ProductCategory | None:
    return db.query(ProductCategory).filter(ProductCategory.id == category_id).first()


def list_categories(db: Session, active_only: bool = False) -> list[ProductCategory]:
    q = db.query(ProductCategory)
    if active_only:
        q = q.filter(ProductCategory.is_active.is_(True))
    return q.order_by(ProductCategory.name).all()


def update_category(db: Session, category_id: int, data: CategoryUpdate) -> ProductCategory | None:
    category = get_category(db, category_id)
    if not category:
        return None
    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("parent_id") == category.id:
        raise ValueError("Category cannot be its own parent")
    for field, value in update_data.items():
        setattr(category, field, value)
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int) -> bool:
    category = get_category(db, category_id)
    if not category:
        return False
    if category.products:
        raise ValueError(f"Category '{category.name}' still has {len(category.products)} products")
    db.delete(category)
    db.commit()
    return True


# --- Products ---

def create_product(db: Session, data: ProductCreate) -> Product:
    if get_product_by_sku(db, data.sku):
        raise ValueError(f"Product SKU {data.sku} already exists")
    if data.category_id and not get_category(db, data.category_id):
        raise ValueError(f"Category {data.category_id} not found")

    skus = [v.sku for v in data.variants]
    if len(skus) != len(set(skus)):
        raise ValueError("Variant SKUs must be unique")
    for sku in skus:
        if get_variant_by_sku(db, sku):
            raise ValueError(f"Variant SKU {sku} already exists")

    product = Product(**data.model_dump(exclude={"variants"}))
    for v_data in data.variants:
        product.variants.append(ProductVariant(**v_data.model_dump()))
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def get_product(db: Session, product_id: int) -> Product | None:
    return db.query(Product).filter(Product.id == product_id).first()


def get_product_by_sku(db: Session, sku: str) -> Product | None:
    return db.query(Product).filter(Product.sku == sku).first()


def list_products(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    category_id: int | None = None,
    status: str | None = None,
    search: str | None = None,
) -> list[Product]:
    q = db.query(Product)
    if category_id:
        q = q.filter(Product.category_id == category_id)
    if status:
        q = q.filter(Product.status == status)
    if search:
        like = f"%{search}%"
        q = q.filter((Product.name.ilike(like)) | (Product.sku.ilike(like)))
    return q.order_by(Product.name).offset(skip).limit(limit).all()


def update_product(db: Session, product_id: int, data: ProductUpdate) -> Product | None:
    product = get_product(db, product_id)
    if not product:
        return None
    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("category_id") and not get_category(db, update_data["category_id"]):
        raise ValueError(f"Category {update_data['category_id']} not found")
    for field, value in update_data.items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product


# --- Variants ---

def create_variant(db: Session, product_id: int, data: VariantCreate) -> ProductVariant | None:
    product = get_product(db, product_id)
    if not product:
        return None
    if get_variant_by_sku(db, data.sku):
        raise ValueError(f"Variant SKU {data.sku} already exists")
    variant = ProductVariant(product_id=product.id, **data.model_dump())
    db.add(variant)
    db.commit()
    db.refresh(variant)
    return variant


def get_variant(db: Session, variant_id: int) -> ProductVariant | None:
    return db.query(ProductVariant).filter(ProductVariant.id == variant_id).first()


def get_variant_by_sku(db: Session, sku: str) -> ProductVariant | None:
    return db.query(ProductVariant).filter(ProductVariant.sku == sku).first()


def update_variant(db: Session, variant_id: int, data: VariantUpdate) -> ProductVariant | None:
    variant = get_variant(db, variant_id)
    if not variant:
        return None
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(variant, field, value)
    db.commit()
    db.refresh(variant)
    return variant


def delete_variant(db: Session, variant_id: int) -> bool:
    variant = get_variant(db, variant_id)
    if not variant:
        return False
    db.delete(variant)
    db.commit()
    return True


# --- Attribute templates ---

def create_attribute_template(db: Session, data: AttributeTemplateCreate) -> ProductAttributeTemplate:
    existing = db.query(ProductAttributeTemplate).filter(ProductAttributeTemplate.name == data.name).first()
    if existing:
        raise ValueError(f"Attribute '{data.name}' already exists")
    template = ProductAttributeTemplate(**data.model_dump())
    if not template.label:
        template.label = data.name.replace("_", " ").title()
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


def get_attribute_template(db: Session, template_id: int) -> ProductAttributeTemplate | None:
    return db.query(ProductAttributeTemplate).filter(ProductAttributeTemplate.id == template_id).first()


def list_attribute_templates(db: Session) -> list[ProductAttributeTemplate]:
    return db.query(ProductAttributeTemplate).order_by(ProductAttributeTemplate.name).all()


def update_attribute_template(
    db: Session, template_id: int, data: AttributeTemplateUpdate
) -> ProductAttributeTemplate | None:
    template = get_attribute_template(db, template_id)
    if not template:
        return None
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(template, field, value)
    db.commit()
    db.refresh(template)
    return template


def delete_attribute_template(db: Session, template_id: int) -> bool:
    template = get_attribute_template(db, template_id)
    if not template:
        return False
    db.delete(template)
    db.commit()
    return True
