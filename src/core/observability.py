"""
Observability setup.

Wraps the Logfire configuration used by the engine so that entry points
and tests configure tracing the same way.
"""

from typing import Optional

import logfire

from src.core.config import Settings, settings as default_settings

_configured = False


def configure_observability(app_settings: Optional[Settings] = None, force: bool = False) -> None:
    """Configure Logfire once per process from application settings."""
    global _configured
    if _configured and not force:
        return

    app_settings = app_settings or default_settings
    logfire.configure(**app_settings.get_logfire_settings())
    _configured = True

    logfire.info(
        "Observability configured",
        app=app_settings.app_name,
        environment=app_settings.environment,
        version=app_settings.app_version,
    )
