"""API route modules."""

from quotation_engine.api.routes import catalog, quotations

__all__ = ["catalog", "quotations"]
