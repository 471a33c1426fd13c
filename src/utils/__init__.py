"""
Utility modules for the insurance request service
"""
from .config_loader import AppSettings, InvoiceConfig, load_invoice_config, load_settings
from .rate_limiter import RateLimiter

__all__ = [
    'AppSettings',
    'InvoiceConfig',
    'load_invoice_config',
    'load_settings',
    'RateLimiter',
]
