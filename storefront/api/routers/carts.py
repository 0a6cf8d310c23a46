#storefront/api/routers/carts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.dependencies import get_current_user
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.schemas import CartOut, ItemIn, ItemQuantityIn
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/carts", tags=["carts"])


@router.get("/me", response_model=CartOut)
def get_cart(
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return CartService(db).get_cart(user.id)


@router.post("/me/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return CartService(db).add_product(
        user_id=user.id,
        product_id=payload.product_id,
        quantity=payload.quantity,
    )


@router.patch("/me/items/{product_id}", response_model=CartOut)
def update_item(
    product_id: int,
    payload: ItemQuantityIn,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return CartService(db).update_quantity(user.id, product_id, payload.quantity)


@router.delete("/me/items/{product_id}", response_model=CartOut)
def remove_item(
    product_id: int,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return CartService(db).remove_product(user.id, product_id)
