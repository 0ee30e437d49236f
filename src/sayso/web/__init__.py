"""sayso web layer: FastAPI app and request auth."""
