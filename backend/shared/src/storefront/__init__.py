"""Storefront payment webhook ingestion core."""
