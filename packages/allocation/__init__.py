"""Allocator contract, allocation models and the fairness metric."""
from .adapter import (
    AllocationFormatError,
    AllocationLine,
    Allocator,
    allocation_plan,
    load_allocator,
    normalize_allocation,
)
from .fairness import fairness, fairness_one_minus_gini, mean
from .model import WEIGHT_METHODS, AllocationConfig, Product

__all__ = [
    "AllocationConfig",
    "AllocationFormatError",
    "AllocationLine",
    "Allocator",
    "allocation_plan",
    "Product",
    "WEIGHT_METHODS",
    "fairness",
    "fairness_one_minus_gini",
    "load_allocator",
    "mean",
    "normalize_allocation",
]
