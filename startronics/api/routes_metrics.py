import secrets

from fastapi import APIRouter, HTTPException, Request, Response, status

router = APIRouter()


def _ensure_scrape_allowed(request: Request) -> None:
    """Prod scrapes must present METRICS_TOKEN as a bearer token."""
    app_settings = request.app.state.app_settings
    if app_settings.app_env != "prod":
        return
    expected = app_settings.metrics_token
    if not expected:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Metrics token misconfigured")
    header = request.headers.get("Authorization", "")
    scheme, _, provided = header.partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(provided.strip(), expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.get("/metrics", include_in_schema=False)
async def metrics_endpoint(request: Request) -> Response:
    metrics_client = getattr(request.app.state, "metrics", None)
    if metrics_client is None or not metrics_client.enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Metrics disabled")
    _ensure_scrape_allowed(request)
    body, content_type = metrics_client.render()
    return Response(content=body, media_type=content_type)
