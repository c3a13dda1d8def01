"""Batch operator - catalog mutations over parallel arrays, all or nothing."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from escrow_ledger.catalog.products import ProductCatalog
from escrow_ledger.errors import PRODUCTS_ARITY, STOCKS_ARITY, ValidationError
from escrow_ledger.interfaces.store import LedgerStore
from escrow_ledger.models.records import Product
from escrow_ledger.units import NATIVE_DECIMALS, normalize_token, parse_units

log = logging.getLogger(__name__)


def _require_same_length(reason: str, *arrays: Sequence) -> None:
    lengths = {len(a) for a in arrays}
    if len(lengths) > 1:
        raise ValidationError(reason, f"array lengths differ: {[len(a) for a in arrays]}")


def parse_catalog_listing(
    data: dict,
) -> tuple[list[int], list[str], list[int], list[str], list[int]]:
    """Flatten a ``globalList`` catalog document into batch submit arrays.

    Layout::

        {"globalList": [{"sellerAddress": "G...",
                         "productList": [{"tokenAddress": "native", "decimals": 7,
                                          "list": [{"productId": 1,
                                                    "priceInHuman": "1.5",
                                                    "stock": 10}]}]}]}

    Prices are converted to base units with the entry's ``decimals``
    (``NATIVE_DECIMALS`` when omitted). ``stock`` defaults to 0.
    """
    product_ids: list[int] = []
    sellers: list[str] = []
    prices: list[int] = []
    tokens: list[str] = []
    stocks: list[int] = []
    for seller_entry in data.get("globalList", []):
        seller = seller_entry["sellerAddress"]
        for token_entry in seller_entry.get("productList", []):
            token = normalize_token(token_entry.get("tokenAddress"))
            decimals = int(token_entry.get("decimals", NATIVE_DECIMALS))
            for item in token_entry.get("list", []):
                product_ids.append(int(item["productId"]))
                sellers.append(seller)
                prices.append(parse_units(item["priceInHuman"], decimals))
                tokens.append(token)
                stocks.append(int(item.get("stock", 0)))
    return product_ids, sellers, prices, tokens, stocks


class BatchOperator:
    """Applies the single-item catalog rules item by item in one transaction.

    Arity is checked before anything runs; the first failing item aborts the
    whole batch and nothing is applied.
    """

    def __init__(self, store: LedgerStore, catalog: ProductCatalog) -> None:
        self._store = store
        self._catalog = catalog

    async def batch_submit_product(
        self,
        caller: str,
        product_ids: Sequence[int],
        sellers: Sequence[str],
        prices: Sequence[int],
        tokens: Sequence[str | None],
        stocks: Sequence[int],
    ) -> list[Product]:
        _require_same_length(PRODUCTS_ARITY, product_ids, sellers, prices, tokens, stocks)
        async with self._store.transaction():
            products = [
                await self._catalog.apply_submit(caller, *item)
                for item in zip(product_ids, sellers, prices, tokens, stocks)
            ]
        log.info("Batch submitted %d products", len(products))
        return products

    async def batch_update_product(
        self,
        caller: str,
        product_ids: Sequence[int],
        sellers: Sequence[str],
        prices: Sequence[int],
        tokens: Sequence[str | None],
        stocks: Sequence[int],
    ) -> list[Product]:
        _require_same_length(PRODUCTS_ARITY, product_ids, sellers, prices, tokens, stocks)
        async with self._store.transaction():
            products = [
                await self._catalog.apply_update(caller, *item)
                for item in zip(product_ids, sellers, prices, tokens, stocks)
            ]
        log.info("Batch updated %d products", len(products))
        return products

    async def batch_add_stock(
        self, caller: str, product_ids: Sequence[int], amounts: Sequence[int]
    ) -> list[Product]:
        _require_same_length(STOCKS_ARITY, product_ids, amounts)
        async with self._store.transaction():
            products = [
                await self._catalog.apply_add_stock(caller, product_id, amount)
                for product_id, amount in zip(product_ids, amounts)
            ]
        log.info("Batch added stock to %d products", len(products))
        return products

    async def batch_remove_stock(
        self, caller: str, product_ids: Sequence[int], amounts: Sequence[int]
    ) -> list[Product]:
        _require_same_length(STOCKS_ARITY, product_ids, amounts)
        async with self._store.transaction():
            products = [
                await self._catalog.apply_remove_stock(caller, product_id, amount)
                for product_id, amount in zip(product_ids, amounts)
            ]
        log.info("Batch removed stock from %d products", len(products))
        return products

    async def batch_switch_enable(
        self, caller: str, product_ids: Sequence[int], enabled: Sequence[bool]
    ) -> list[Product]:
        _require_same_length(PRODUCTS_ARITY, product_ids, enabled)
        async with self._store.transaction():
            products = [
                await self._catalog.apply_switch_enable(caller, product_id, flag)
                for product_id, flag in zip(product_ids, enabled)
            ]
        log.info("Batch switched %d products", len(products))
        return products
