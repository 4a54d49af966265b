"""
Travel Invoice Service

Invoices for a travel agency back office: generation from bookings,
line-item financials, payment tracking and statistics over a document store.
"""

__version__ = "1.0.0"
