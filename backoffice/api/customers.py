from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from backoffice.api.auth import get_current_user
from backoffice.database import get_db
from backoffice.models.customer import Customer
from backoffice.models.order import Order
from backoffice.models.user import User
from backoffice.schemas.customer import CustomerCreate, CustomerOut, CustomerUpdate
from backoffice.schemas.order import OrderListOut
from backoffice.services import order_service

router = APIRouter(prefix="/customers", tags=["Customers"])


def _email_taken(db: Session, email: str, exclude_id: int | None = None) -> bool:
    q = db.query(Customer).filter(Customer.email == email)
    if exclude_id:
        q = q.filter(Customer.id != exclude_id)
    return q.first() is not None


@router.post("", status_code=201)
def create_customer(body: CustomerCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if _email_taken(db, body.email):
        raise HTTPException(400, f"Customer email '{body.email}' already exists")
    c = Customer(name=body.name, email=body.email, phone=body.phone, notes=body.notes)
    db.add(c)
    db.commit()
    db.refresh(c)
    return CustomerOut.model_validate(c)


@router.get("")
def list_customers(
    q: str = "",
    skip: int = 0,
    limit: int = 100,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(Customer)
    if q:
        query = query.filter(Customer.name.ilike(f"%{q}%") | Customer.email.ilike(f"%{q}%"))
    total = query.count()
    customers = query.order_by(Customer.name).offset(skip).limit(limit).all()
    return {"total": total, "customers": [CustomerOut.model_validate(c) for c in customers]}


@router.get("/{customer_id}")
def get_customer(customer_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = db.query(Customer).filter(Customer.id == customer_id).first()
    if not c:
        raise HTTPException(404, "Customer not found")
    return CustomerOut.model_validate(c)


@router.get("/{customer_id}/orders", response_model=list[OrderListOut])
def customer_orders(
    customer_id: int,
    skip: int = 0,
    limit: int = 100,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not db.query(Customer).filter(Customer.id == customer_id).first():
        raise HTTPException(404, "Customer not found")
    return order_service.list_orders(db, skip=skip, limit=limit, customer_id=customer_id)


@router.patch("/{customer_id}")
def update_customer(
    customer_id: int,
    body: CustomerUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    c = db.query(Customer).filter(Customer.id == customer_id).first()
    if not c:
        raise HTTPException(404, "Customer not found")
    if body.email and _email_taken(db, body.email, exclude_id=c.id):
        raise HTTPException(400, f"Customer email '{body.email}' already exists")
    for field, val in body.model_dump(exclude_unset=True).items():
        setattr(c, field, val)
    db.commit()
    db.refresh(c)
    return CustomerOut.model_validate(c)


@router.delete("/{customer_id}", status_code=204)
def delete_customer(customer_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = db.query(Customer).filter(Customer.id == customer_id).first()
    if not c:
        raise HTTPException(404, "Customer not found")
    if db.query(Order).filter(Order.customer_id == customer_id).count():
        raise HTTPException(400, "Cannot delete customer with existing orders")
    db.delete(c)
    db.commit()
