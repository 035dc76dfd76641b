from mssql_access.api.main import create_app, lifespan, make_lifespan

__all__ = ["create_app", "lifespan", "make_lifespan"]
