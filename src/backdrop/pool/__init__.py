from .manager import PoolManager, should_grow

__all__ = ["PoolManager", "should_grow"]
