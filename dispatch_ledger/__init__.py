"""Settlement and wallet-ledger engine for dispatch orders."""

__version__ = "0.1.0"
