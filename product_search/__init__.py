"""Faceted product search over Elasticsearch with zero-downtime index rebuilds."""
