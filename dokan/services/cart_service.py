from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

from dokan import models, schemas
from dokan.auth import get_current_user
from dokan.database import get_db

router = APIRouter(tags=["cart"])


def cart_query(db, user_id):
    return db.query(models.CartItem).options(
        joinedload(models.CartItem.product).joinedload(models.Product.vendor)
    ).filter(models.CartItem.user_id == user_id)


def own_cart_item(db, item_id, user_id):
    item = db.query(models.CartItem).filter(models.CartItem.id == item_id).first()
    if not item or item.user_id != user_id:
        raise HTTPException(404, "Cart item not found")
    return item


# ==========================================
# API CART
# ==========================================
@router.get("/api/cart", response_model=List[schemas.CartItemOut])
def get_my_cart(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    return cart_query(db, user.id).order_by(models.CartItem.created_at).all()


@router.post("/api/cart", response_model=schemas.CartItemOut, status_code=201)
def add_to_cart(payload: schemas.CartAdd, user: models.User = Depends(get_current_user),
                db: Session = Depends(get_db)):
    product = db.query(models.Product).filter(models.Product.id == payload.product_id).first()
    if not product:
        raise HTTPException(404, "Product not found")

    # Same product again -> add to the existing line
    item = db.query(models.CartItem).filter(
        models.CartItem.user_id == user.id, models.CartItem.product_id == product.id
    ).first()
    if item:
        item.quantity += payload.quantity
    else:
        item = models.CartItem(user_id=user.id, product_id=product.id, quantity=payload.quantity)
        db.add(item)
    db.commit()
    db.refresh(item)
    return item


@router.put("/api/cart/{item_id}", response_model=schemas.CartItemOut)
def update_cart_item(item_id: str, payload: schemas.CartUpdate, user: models.User = Depends(get_current_user),
                     db: Session = Depends(get_db)):
    if payload.quantity < 1:
        raise HTTPException(400, "Valid quantity is required")
    item = own_cart_item(db, item_id, user.id)
    item.quantity = payload.quantity
    db.commit()
    db.refresh(item)
    return item


@router.delete("/api/cart/{item_id}")
def remove_cart_item(item_id: str, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    item = own_cart_item(db, item_id, user.id)
    db.delete(item)
    db.commit()
    return {"message": "Item removed from cart"}


@router.delete("/api/cart")
def clear_cart(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    db.query(models.CartItem).filter(models.CartItem.user_id == user.id).delete()
    db.commit()
    return {"message": "Cart cleared"}
