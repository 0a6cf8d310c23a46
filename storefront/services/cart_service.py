from decimal import Decimal
from typing import Dict, Any
from sqlalchemy.orm import Session
from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import NotFoundError, ValidationError
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

class CartService:
    """
    Prosta implementacja cqrs i proste use case dla domeny cart
    commands (add, update, remove) modyfikuja stan
    query (get) tylko odczyt
    Koszyk jest jeden na uzytkownika i powstaje przy pierwszym uzyciu.
    """

    def __init__(self, db: Session):
        self.repo = CartRepo(db)
        self.product_repo = ProductRepo(db)

    #query - odczyt
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self._get_or_create_cart(user_id)
        self.repo.commit()
        return self._to_dict(cart)

    #commands
    def add_product(self, user_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        product = self.product_repo.get_product(product_id)
        if not product:
            raise NotFoundError("Product not found")

        cart = self._get_or_create_cart(user_id)
        existing_item = self.repo.get_cart_item(cart.id, product_id)
        new_quantity = quantity + (existing_item.quantity if existing_item else 0)

        # wstepna kontrola, wiazaca jest dopiero w checkoucie
        if new_quantity > product.stock:
            raise ValidationError(
                "Insufficient stock",
                {"productId": product.id, "requested": new_quantity, "available": product.stock},
            )

        if existing_item:
            logger.info(
                f"Produkt {product_id} już jest w koszyku, zwiekszam ilosc "
                f"z {existing_item.quantity} do {new_quantity}"
            )
            existing_item.quantity = new_quantity
        else:
            logger.info(f"Dodaje nowy produkt {product_id} do koszyka {cart.id}")
            self.repo.add_cart_item(
                CartItemModel(cart_id=cart.id, product_id=product_id, quantity=quantity)
            )

        self.repo.commit()
        return self._to_dict(cart)

    def update_quantity(self, user_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        cart = self.repo.get_cart_by_user(user_id)
        item = self.repo.get_cart_item(cart.id, product_id) if cart else None
        if not item:
            raise NotFoundError("Cart item not found")

        product = self.product_repo.get_product(product_id)
        if quantity > product.stock:
            raise ValidationError(
                "Insufficient stock",
                {"productId": product.id, "requested": quantity, "available": product.stock},
            )

        item.quantity = quantity
        self.repo.commit()

        logger.info(f"Ilosc produktu {product_id} w koszyku {cart.id} ustawiona na {quantity}")
        return self._to_dict(cart)

    def remove_product(self, user_id: int, product_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            raise NotFoundError("Cart not found")

        if self.repo.delete_cart_item(cart.id, product_id) == 0:
            raise NotFoundError("Cart item not found")

        self.repo.commit()

        logger.info(f"Produkt {product_id} usunięty z koszyka {cart.id}")
        return self._to_dict(cart)

    def _get_or_create_cart(self, user_id: int) -> CartModel:
        cart = self.repo.get_cart_by_user(user_id)
        if cart:
            return cart

        created = self.repo.create_cart(CartModel(user_id=user_id))
        logger.info(f"Utworzono nowy koszyk {created.id} dla użytkownika {user_id}")
        return created

    def _to_dict(self, cart: CartModel) -> Dict[str, Any]:
        #ceny zawsze aktualne z produktu
        items = self.repo.get_cart_items(cart.id)
        total = sum((i.product.price * i.quantity for i in items), Decimal("0.00"))

        #dict przyksztalcany w jsona
        return {
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "items": [
                {
                    "product_id": i.product_id,
                    "name": i.product.name,
                    "quantity": i.quantity,
                    "price": i.product.price,
                }
                for i in items
            ],
            "total": total,
        }
