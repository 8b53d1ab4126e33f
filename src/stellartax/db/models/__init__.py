from stellartax.db.models.price_cache import PriceCacheRecord

__all__ = [
    "PriceCacheRecord",
]
