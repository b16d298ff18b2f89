"""shopsync - multi-tenant Shopify catalog mirror"""

__version__ = "1.0.0"
