"""Product catalog - listings and their mutation rules."""

from __future__ import annotations

import logging

from escrow_ledger.encoding import is_valid_account
from escrow_ledger.errors import (
    ALREADY_EXISTS,
    INVALID_PRICE,
    INVALID_PRODUCT_ID,
    INVALID_SELLER,
    INVALID_STOCK,
    INVALID_STOCK_TO_ADD,
    INVALID_STOCK_TO_REMOVE,
    NOT_FOUND,
    StateConflictError,
    ValidationError,
)
from escrow_ledger.interfaces.store import LedgerStore
from escrow_ledger.models.records import Product
from escrow_ledger.registry.access import require_access
from escrow_ledger.units import normalize_token

log = logging.getLogger(__name__)

# Product ids and stock are stored as SQLite INTEGER.
MAX_PRODUCT_ID = 2**63 - 1
MAX_STOCK = 2**63 - 1


def _validate_product_id(product_id: int) -> None:
    if not 0 < product_id <= MAX_PRODUCT_ID:
        raise ValidationError(INVALID_PRODUCT_ID, f"invalid product id {product_id}")


def _validate_listing(product_id: int, seller: str, price: int, stock: int) -> None:
    _validate_product_id(product_id)
    if price <= 0:
        raise ValidationError(INVALID_PRICE, f"invalid price {price}")
    if not is_valid_account(seller):
        raise ValidationError(INVALID_SELLER, f"invalid seller {seller!r}")
    if not 0 <= stock <= MAX_STOCK:
        raise ValidationError(INVALID_STOCK, f"invalid stock {stock}")


class ProductCatalog:
    """Owns product listings.

    Every mutation is allowed for the admin, or for a whitelisted seller
    acting on its own listings. Listings are never deleted, only disabled.

    The ``apply_*`` methods hold the rules and run inside an already open
    transaction; the public methods wrap each in its own transaction.
    """

    def __init__(self, store: LedgerStore) -> None:
        self._store = store

    # ── Reads ──────────────────────────────────────────────

    async def get_product(self, product_id: int) -> Product | None:
        async with self._store.reading():
            if not 0 < product_id <= MAX_PRODUCT_ID:
                return None
            return await self._store.get_product(product_id)

    async def get_products_ids(self) -> list[int]:
        async with self._store.reading():
            return await self._store.get_product_ids()

    # ── Single-item operations ─────────────────────────────

    async def submit_product(
        self, caller: str, product_id: int, seller: str, price: int,
        token: str | None, stock: int,
    ) -> Product:
        async with self._store.transaction():
            return await self.apply_submit(caller, product_id, seller, price, token, stock)

    async def update_product(
        self, caller: str, product_id: int, seller: str, price: int,
        token: str | None, stock: int,
    ) -> Product:
        async with self._store.transaction():
            return await self.apply_update(caller, product_id, seller, price, token, stock)

    async def switch_enable(self, caller: str, product_id: int, enabled: bool) -> Product:
        async with self._store.transaction():
            return await self.apply_switch_enable(caller, product_id, enabled)

    async def add_stock(self, caller: str, product_id: int, amount: int) -> Product:
        async with self._store.transaction():
            return await self.apply_add_stock(caller, product_id, amount)

    async def remove_stock(self, caller: str, product_id: int, amount: int) -> Product:
        async with self._store.transaction():
            return await self.apply_remove_stock(caller, product_id, amount)

    # ── Rules (inside a transaction) ───────────────────────

    async def apply_submit(
        self, caller: str, product_id: int, seller: str, price: int,
        token: str | None, stock: int,
    ) -> Product:
        _validate_listing(product_id, seller, price, stock)
        await require_access(self._store, caller, seller)
        if await self._store.get_product(product_id) is not None:
            raise StateConflictError(ALREADY_EXISTS, f"product {product_id} already exists")

        product = Product(
            product_id=product_id,
            seller=seller,
            token=normalize_token(token),
            price=price,
            stock=stock,
        )
        await self._store.insert_product(product)
        await self._store.log_activity(
            "product_submitted",
            f"Product {product_id} listed by {seller} at {price} {product.token}",
            product_id=product_id, amount=price,
        )
        log.info(
            "Product %d submitted (seller=%s, price=%d %s, stock=%d)",
            product_id, seller[:16], price, product.token, stock,
        )
        return product

    async def apply_update(
        self, caller: str, product_id: int, seller: str, price: int,
        token: str | None, stock: int,
    ) -> Product:
        _validate_listing(product_id, seller, price, stock)
        existing = await self._require_product(product_id)
        await require_access(self._store, caller, existing.seller, seller)

        product = Product(
            product_id=product_id,
            seller=seller,
            token=normalize_token(token),
            price=price,
            stock=stock,
            enabled=existing.enabled,
        )
        await self._store.save_product(product)
        await self._store.log_activity(
            "product_updated",
            f"Product {product_id} updated: {price} {product.token}, stock {stock}",
            product_id=product_id, amount=price,
        )
        log.info("Product %d updated", product_id)
        return product

    async def apply_switch_enable(self, caller: str, product_id: int, enabled: bool) -> Product:
        _validate_product_id(product_id)
        product = await self._require_product(product_id)
        await require_access(self._store, caller, product.seller)

        product.enabled = bool(enabled)
        await self._store.save_product(product)
        state = "enabled" if product.enabled else "disabled"
        await self._store.log_activity(
            f"product_{state}", f"Product {product_id} {state}", product_id=product_id,
        )
        log.info("Product %d %s", product_id, state)
        return product

    async def apply_add_stock(self, caller: str, product_id: int, amount: int) -> Product:
        _validate_product_id(product_id)
        if amount <= 0:
            raise ValidationError(INVALID_STOCK_TO_ADD, f"invalid amount {amount}")
        product = await self._require_product(product_id)
        await require_access(self._store, caller, product.seller)
        if product.stock + amount > MAX_STOCK:
            raise ValidationError(
                INVALID_STOCK_TO_ADD, f"cannot add {amount}, stock is {product.stock}",
            )

        product.stock += amount
        await self._store.save_product(product)
        await self._store.log_activity(
            "stock_added", f"Product {product_id} stock +{amount}", product_id=product_id, amount=amount,
        )
        log.info("Product %d stock +%d -> %d", product_id, amount, product.stock)
        return product

    async def apply_remove_stock(self, caller: str, product_id: int, amount: int) -> Product:
        _validate_product_id(product_id)
        if amount <= 0:
            raise ValidationError(INVALID_STOCK_TO_REMOVE, f"invalid amount {amount}")
        product = await self._require_product(product_id)
        await require_access(self._store, caller, product.seller)
        if amount > product.stock:
            raise StateConflictError(
                INVALID_STOCK_TO_REMOVE, f"cannot remove {amount}, stock is {product.stock}",
            )

        product.stock -= amount
        await self._store.save_product(product)
        await self._store.log_activity(
            "stock_removed", f"Product {product_id} stock -{amount}", product_id=product_id, amount=amount,
        )
        log.info("Product %d stock -%d -> %d", product_id, amount, product.stock)
        return product

    async def _require_product(self, product_id: int) -> Product:
        product = await self._store.get_product(product_id)
        if product is None:
            raise StateConflictError(NOT_FOUND, f"product {product_id} does not exist")
        return product
