"""Konterra: personal-network CRM core (contacts, relationship graph, geo enrichment)."""

__version__ = "0.1.0"
