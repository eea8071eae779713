"""
Utility modules for the sales agent
"""
from .config_loader import Settings, ProductSeed, load_settings, load_product_seed

__all__ = [
    'Settings',
    'ProductSeed',
    'load_settings',
    'load_product_seed',
]
