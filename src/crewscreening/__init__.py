"""Seafarer interview screening core with an adaptive weight-learning loop."""

__version__ = "0.1.0"
