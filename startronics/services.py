from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from startronics.domain.lifecycle.coordinator import LifecycleCoordinator
from startronics.infra.db import get_session_factory
from startronics.infra.metrics import Metrics, configure_metrics


@dataclass
class AppServices:
    """Typed container for runtime services stored on `app.state.services`."""

    lifecycle: LifecycleCoordinator
    metrics: Metrics


def build_app_services(
    app_settings,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    metrics: Metrics | None = None,
) -> AppServices:
    metrics_client = metrics or configure_metrics(app_settings.metrics_enabled)
    factory = session_factory or get_session_factory()
    return AppServices(
        lifecycle=LifecycleCoordinator(
            factory,
            metrics=metrics_client,
            default_currency=app_settings.default_currency,
        ),
        metrics=metrics_client,
    )


def resolve_services(container_like: Any) -> AppServices | None:
    if isinstance(container_like, AppServices):
        return container_like
    if container_like is None:
        return None
    state = getattr(container_like, "state", container_like)
    return getattr(state, "services", None)
