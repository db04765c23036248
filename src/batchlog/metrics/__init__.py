"""Delivery metrics."""
