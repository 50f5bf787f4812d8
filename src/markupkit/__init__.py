"""Markup rule matching and invoice line-item computation for fulfillment fees."""

__version__ = "0.1.0"
