"""Vendor adapters for e-invoice submission."""

from adapters.base import BaseAdapter
from adapters.factory import AdapterFactory

__all__ = ["BaseAdapter", "AdapterFactory"]
