"""Service layer: catalog, registry, answers and submissions."""
