"""Routers mounted by ``konterra.api.app.create_app``."""
