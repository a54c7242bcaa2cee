"""Storefront API package."""

from storefront.api.routes import store_router

__all__ = ["store_router"]
