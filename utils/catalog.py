"""Product catalog lookups against the `Products` sheet."""

import logging
from typing import Dict, List, Optional

from constants.schemas import Product
from constants.sheets import PRODUCTS_DISABLED_CODES_RANGE, PRODUCTS_SHEET_RANGE

logger = logging.getLogger(__name__)


class ProductCatalog:
    def __init__(self, store):
        self.store = store

    def list_products(self) -> List[Product]:
        """All products, skipping blank rows. Header is row 1."""
        rows = self.store.read_rows(PRODUCTS_SHEET_RANGE)
        products = []
        for idx, row in enumerate(rows[1:], start=1):
            if not row or not str(row[0] or "").strip():
                continue
            products.append(Product.from_row(row, row_index=idx))
        return products

    def products_by_code(self) -> Dict[str, Product]:
        return {product.code: product for product in self.list_products()}

    def get_product(self, code: str) -> Optional[Product]:
        code = (code or "").strip()
        for product in self.list_products():
            if product.code == code:
                return product
        logger.debug(f"Product {code} not found in catalog")
        return None

    def list_disabled_codes(self) -> List[str]:
        """Disabled product codes, de-duplicated case-insensitively, first spelling wins."""
        rows = self.store.read_rows(PRODUCTS_DISABLED_CODES_RANGE)
        seen = set()
        codes = []
        for row in rows:
            value = str(row[0] if row else "").strip()
            if not value or value.lower() in seen:
                continue
            seen.add(value.lower())
            codes.append(value)
        return codes

    def list_visible(self, include_disabled: bool = False) -> List[Dict]:
        """Products for the UI: enabled only, or everything flagged with `disabled`."""
        products = self.list_products()
        try:
            disabled = {code.lower() for code in self.list_disabled_codes()}
        except Exception as e:
            logger.warning(f"Could not load disabled product codes: {e}")
            disabled = set()

        out = []
        for product in products:
            is_disabled = product.code.lower() in disabled
            if is_disabled and not include_disabled:
                continue
            payload = product.model_dump(by_alias=True, mode="json")
            if include_disabled:
                payload["disabled"] = is_disabled
            out.append(payload)
        return out
