from .transaction import atomic

__all__ = ["atomic"]
