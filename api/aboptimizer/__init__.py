"""AB Optimizer API: Bayesian winner determination for product-page A/B tests."""

__version__ = "0.1.0"
