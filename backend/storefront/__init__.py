"""Storefront chat backend: query understanding and ranking pipeline."""
