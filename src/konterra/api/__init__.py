"""HTTP boundary for konterra: a FastAPI app over ``konterra.tools``."""
