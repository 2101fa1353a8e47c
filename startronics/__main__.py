import logging
import sys

import pydantic
import uvicorn

from startronics.infra.logging import configure_logging

logger = logging.getLogger("startronics")


def main() -> None:
    configure_logging()
    try:
        from startronics.settings import settings
    except pydantic.ValidationError as exc:
        for error in exc.errors():
            field = ".".join(str(part) for part in error.get("loc", ())) or "settings"
            logger.error(
                "startup_config_error",
                extra={"extra": {"field": field, "detail": error.get("msg", "invalid value")}},
            )
        sys.exit(1)

    uvicorn.run("startronics.main:app", host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
