from fastapi import APIRouter
from fastapi.responses import JSONResponse

from mssql_access.api.deps import ClientDep
from mssql_access.core.health import liveness_check, readiness_check

router = APIRouter(prefix="/utils", tags=["utils"])


@router.get("/liveness/", response_model=None)
async def liveness() -> bool | JSONResponse:
    """Liveness probe. No database I/O."""
    ok, failures = liveness_check()
    if not ok:
        return JSONResponse(
            status_code=503,
            content={"success": False, "message": "Process unhealthy", "data": failures},
        )
    return True


@router.get("/health-check/", response_model=None)
async def health_check(client: ClientDep) -> bool | JSONResponse:
    """Readiness probe: true when SQL Server answers, else 503 with the failed checks."""
    ok, failures = await readiness_check(client)
    if not ok:
        return JSONResponse(
            status_code=503,
            content={
                "success": False,
                "message": "Service Unavailable",
                "data": failures,
            },
        )
    return True
