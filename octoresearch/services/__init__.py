"""Pipeline services: validation, caching, execution, hints and assembly."""
