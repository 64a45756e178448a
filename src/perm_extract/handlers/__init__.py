from .extract import ExtractHandler, ExtractListHandler

__all__ = [
    "ExtractHandler",
    "ExtractListHandler",
]
