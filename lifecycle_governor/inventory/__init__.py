"""Inventory adapters that produce the per-pass resource snapshot."""

from .base import InventoryAdapter, InventoryFilter

__all__ = ["InventoryAdapter", "InventoryFilter"]
