# ==============================================================================
# CART SERVICE
# ==============================================================================
# Business logic of the POS cart. The cart lives in the Flask session so each
# logged-in terminal has its own; nothing is persisted until checkout.
# ==============================================================================

from typing import Any, Dict, MutableMapping, Optional
from flask import session

from clinic_pos import config
from clinic_pos.services.catalog_service import CatalogService
from clinic_pos.services.pricing import CartBuilder

CART_KEY = 'cart'


class CartService:
    """
    Service for the POS cart.

    Responsibilities:
    - Add catalog services to the cart (only available ones)
    - Remove lines by token
    - Return lines with the pricing breakdown
    - Empty the cart

    The cart is stored in session['cart'].
    """

    def __init__(self, catalog_service: CatalogService, storage: MutableMapping = None):
        """
        Args:
            catalog_service: Catalog used to look services up
            storage: Mapping holding the cart (defaults to the Flask session)
        """
        self.catalog_service = catalog_service
        self._storage = storage

    def _store(self) -> MutableMapping:
        return self._storage if self._storage is not None else session

    def _load(self) -> CartBuilder:
        return CartBuilder.from_list(self._store().get(CART_KEY, []))

    def _save(self, cart: CartBuilder) -> None:
        store = self._store()
        store[CART_KEY] = cart.to_list()
        if store is session:
            session.modified = True

    def get_builder(self) -> CartBuilder:
        """Current cart as a CartBuilder (a copy; changes are not saved)."""
        return self._load()

    def get_cart(self, discount_percent: Any = 0) -> Dict[str, Any]:
        """
        Returns the cart with its breakdown.

        Returns:
            Dict with items, items_count and the breakdown fields
        """
        cart = self._load()
        breakdown = cart.compute_breakdown(discount_percent)
        return {
            'items': cart.to_list(),
            'items_count': len(cart.lines),
            **breakdown.to_dict(),
        }

    def add_service(self, service_id: Optional[str]) -> Dict[str, Any]:
        """
        Adds a catalog service to the cart.

        Returns:
            Dict with the result (ok, error, line, cart)
        """
        if not service_id:
            return {'ok': False, 'error': 'Invalid service'}

        service = self.catalog_service.get_service(service_id)
        if not service:
            return {'ok': False, 'error': 'Service not found', 'not_found': True}

        if not service.get('available'):
            return {'ok': False, 'error': 'This service is currently unavailable'}

        cart = self._load()
        if len(cart.lines) >= config.MAX_CART_LINES:
            return {'ok': False, 'error': f'A cart holds at most {config.MAX_CART_LINES} services'}

        line = cart.add_line(service)
        self._save(cart)

        return {
            'ok': True,
            'message': 'Service added to cart',
            'line': line.to_dict(),
            'cart': self.get_cart(),
        }

    def remove_line(self, token: Any) -> Dict[str, Any]:
        """Removes one line; an unknown token is a no-op."""
        cart = self._load()
        removed = cart.remove_line(token)
        if removed:
            self._save(cart)
        return {'ok': True, 'removed': removed, 'cart': self.get_cart()}

    def clear_cart(self) -> Dict[str, Any]:
        self._save(CartBuilder())
        return {'ok': True, 'message': 'Cart emptied', 'cart': self.get_cart()}
