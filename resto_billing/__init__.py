"""
Resto Billing - Mercado Pago billing webhooks for the restaurant platform
"""

__version__ = "1.0.0"
