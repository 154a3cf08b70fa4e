"""
Quotation Engine

Pricing, discount approval, versioning and life cycle for vehicle
body-building quotations.
"""

__version__ = "1.0.0"
