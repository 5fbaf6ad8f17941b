"""StoreKit service - purchase coordination and App Store receipt validation."""

__version__ = "0.1.0"
