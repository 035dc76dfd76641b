from typing import Annotated

from fastapi import Depends, Request

from mssql_access.client import MSSqlClient


def get_client(request: Request) -> MSSqlClient | None:
    """The client started by the app lifespan (None outside of it)."""
    return getattr(request.app.state, "mssql", None)


ClientDep = Annotated[MSSqlClient | None, Depends(get_client)]
