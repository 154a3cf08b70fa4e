"""API layer for the Quotation Engine."""
