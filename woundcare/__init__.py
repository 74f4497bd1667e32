"""Wound care clinic desk: treatments, invoices and sales-rep commissions."""

__version__ = "1.4.0"
