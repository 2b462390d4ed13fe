import logging

from moodapp.core.config import settings

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s – %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Root-Logger einmalig beim App-Start konfigurieren."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=_FORMAT,
    )
