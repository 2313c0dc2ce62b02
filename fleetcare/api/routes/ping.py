from fastapi import APIRouter, Request

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health probe")
async def ping(request: Request) -> dict[str, str]:
    configured = getattr(request.app.state, "maintenance_service", None) is not None
    return {"status": "ok", "maintenance": "ready" if configured else "unavailable"}
