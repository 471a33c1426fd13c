"""Invoice PDF generation."""

from src.invoices.images import ImageResolver
from src.invoices.renderer import InvoiceRenderer, format_currency, invoice_filename, invoice_url

__all__ = ["ImageResolver", "InvoiceRenderer", "format_currency", "invoice_filename", "invoice_url"]
