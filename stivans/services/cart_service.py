import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from stivans.errors import CartItemNotFoundError, NotFoundError, ValidationError
from stivans.models.cart import Cart, CartItem
from stivans.models.product import Product
from stivans.schemas.checkout_schemas import LineItemSnapshot

logger = logging.getLogger(__name__)


class CartManager:
    """One cart per user, items keyed by product."""

    def __init__(self, session: Session):
        self.session = session

    def find_cart(self, user_id: str) -> Optional[Cart]:
        return self.session.exec(
            select(Cart).where(Cart.user_id == user_id)
        ).first()

    def get_cart(self, cart_id: int) -> Cart:
        cart = self.session.get(Cart, cart_id)
        if not cart:
            raise NotFoundError("Cart not found")
        return cart

    def get_or_create_cart(self, user_id: str) -> Cart:
        cart = self.find_cart(user_id)
        if cart:
            return cart

        cart = Cart(user_id=user_id)
        self.session.add(cart)
        try:
            self.session.commit()
        except IntegrityError:
            # another request created it first
            self.session.rollback()
            cart = self.find_cart(user_id)
            if cart is None:
                raise
            return cart

        self.session.refresh(cart)
        return cart

    def list_items(self, cart: Cart) -> List[Tuple[CartItem, Product]]:
        return self.session.exec(
            select(CartItem, Product)
            .join(Product, CartItem.product_id == Product.id)
            .where(CartItem.cart_id == cart.id)
            .order_by(CartItem.id)
        ).all()

    def add_item(self, cart: Cart, product_id: int, quantity: int = 1) -> CartItem:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        product = self.session.get(Product, product_id)
        if not product or not product.is_active:
            raise NotFoundError("Product not found")

        existing_item = self._find_item_by_product(cart, product_id)
        if existing_item:
            return self._increase(existing_item, quantity)

        new_item = CartItem(cart_id=cart.id, product_id=product_id, quantity=quantity)
        self.session.add(new_item)
        try:
            self.session.commit()
        except IntegrityError:
            # concurrent add of the same product; fold into that row
            self.session.rollback()
            existing_item = self._find_item_by_product(cart, product_id)
            if existing_item is None:
                raise
            return self._increase(existing_item, quantity)

        self.session.refresh(new_item)
        return new_item

    def update_quantity(self, cart: Cart, item_id: int, quantity: int) -> Optional[CartItem]:
        """Returns None when the item was removed because quantity <= 0."""
        item = self._get_item(cart, item_id)

        if quantity <= 0:
            self.session.delete(item)
            self.session.commit()
            return None

        item.quantity = quantity
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    def remove_item(self, cart: Cart, item_id: int):
        item = self._get_item(cart, item_id)
        self.session.delete(item)
        self.session.commit()

    def clear(self, cart: Cart) -> int:
        items = self.session.exec(
            select(CartItem).where(CartItem.cart_id == cart.id)
        ).all()

        for item in items:
            self.session.delete(item)

        self.session.commit()
        logger.info(f"Cleared {len(items)} items from cart {cart.id}")
        return len(items)

    def snapshot(self, user_id: str) -> List[LineItemSnapshot]:
        cart = self.find_cart(user_id)
        if cart is None:
            return []

        return [
            LineItemSnapshot(
                product_id=product.id,
                name=product.name,
                unit_price=product.price,
                quantity=item.quantity,
                image_url=product.image_url,
            )
            for item, product in self.list_items(cart)
        ]

    def _find_item_by_product(self, cart: Cart, product_id: int) -> Optional[CartItem]:
        return self.session.exec(
            select(CartItem).where(
                CartItem.cart_id == cart.id,
                CartItem.product_id == product_id,
            )
        ).first()

    def _get_item(self, cart: Cart, item_id: int) -> CartItem:
        item = self.session.get(CartItem, item_id)
        if not item or item.cart_id != cart.id:
            raise CartItemNotFoundError()
        return item

    def _increase(self, item: CartItem, quantity: int) -> CartItem:
        item.quantity += quantity
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item


def serialize_cart(cart: Cart, rows) -> dict:
    items = []
    subtotal = 0

    for item, product in rows:
        line_total = product.price * item.quantity
        subtotal += line_total
        items.append({
            "item_id": item.id,
            "product_id": product.id,
            "name": product.name,
            "price": product.price,
            "image_url": product.image_url,
            "quantity": item.quantity,
            "total": line_total,
        })

    return {
        "cart_id": cart.id,
        "items": items,
        "subtotal": subtotal,
    }
