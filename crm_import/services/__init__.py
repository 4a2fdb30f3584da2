"""Mapping, validation, ingestion and the services around them."""
