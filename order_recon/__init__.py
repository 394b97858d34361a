"""Order Log / Billing Export reconciliation toolkit."""

__version__ = "0.1.0"
