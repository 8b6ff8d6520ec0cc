"""Storefront webhook REST API."""
