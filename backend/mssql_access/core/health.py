"""
Probes behind the /utils health routes.

liveness_check: the process answers at all (no I/O).
readiness_check: SQL Server answers through the client's pool.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mssql_access.client import MSSqlClient


def liveness_check() -> tuple[bool, list[str]]:
    """Always ok while the event loop runs. Same return shape as readiness_check."""
    return (True, [])


async def readiness_check(client: "MSSqlClient | None") -> tuple[bool, list[str]]:
    """Return (ok, names of failed dependencies)."""
    failures: list[str] = []

    if client is None or not await client.health_check():
        failures.append("mssql")

    return (len(failures) == 0, failures)
