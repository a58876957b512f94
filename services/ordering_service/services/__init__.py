"""Ordering Service business logic package."""
