"""Keyset neighbor navigation inside an album."""
from .keyset import NEIGHBOR_LIMIT, KeysetNavigator, NeighborOrder, neighbor_order_for

__all__ = ["NEIGHBOR_LIMIT", "KeysetNavigator", "NeighborOrder", "neighbor_order_for"]
