from fastapi import HTTPException, Request, status

from startronics.domain.lifecycle.coordinator import LifecycleCoordinator
from startronics.services import resolve_services


def get_lifecycle(request: Request) -> LifecycleCoordinator:
    services = resolve_services(request.app)
    if services is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service not ready")
    return services.lifecycle


def get_app_settings(request: Request):
    return request.app.state.app_settings
