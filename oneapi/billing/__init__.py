from .quota import QuotaAccountant, compute_cost, resolve_pricing

__all__ = ["QuotaAccountant", "compute_cost", "resolve_pricing"]
