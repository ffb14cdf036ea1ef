"""Coupon engine for the gym membership platform."""

__version__ = "0.1.0"
