"""Product catalog and batch catalog operations."""

from escrow_ledger.catalog.batch import BatchOperator, parse_catalog_listing
from escrow_ledger.catalog.products import ProductCatalog

__all__ = ["BatchOperator", "ProductCatalog", "parse_catalog_listing"]
