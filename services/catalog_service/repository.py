from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Product, Vendor


class CatalogRepository:

    @staticmethod
    async def get_products_by_ids(db: AsyncSession, product_ids: list[str]) -> dict[str, Product]:
        if not product_ids:
            return {}
        result = await db.execute(select(Product).where(Product.id.in_(product_ids)))
        return {product.id: product for product in result.scalars().all()}

    @staticmethod
    async def get_vendor(db: AsyncSession, vendor_id: str) -> Optional[Vendor]:
        result = await db.execute(select(Vendor).where(Vendor.id == vendor_id))
        return result.scalars().first()
