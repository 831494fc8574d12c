"""
Sage Plugin sidecar — FastAPI app hosting one SagePlugin.

Run: uv run uvicorn sage_plugin.main:app --host 127.0.0.1 --port 4097
 or: sage-plugin
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from sage_plugin import __version__
from sage_plugin.core.config import PluginConfig, config as default_config
from sage_plugin.core.logging import setup_logging
from sage_plugin.http.routes import create_plugin_router
from sage_plugin.plugin import SagePlugin

logger = logging.getLogger("sage_plugin")


def create_app(
    config: PluginConfig | None = None,
    plugin: SagePlugin | None = None,
) -> FastAPI:
    """Build the sidecar app.

    With no ``plugin`` given, one is wired from config at startup and closed
    on shutdown. A caller-supplied plugin is left for the caller to close.
    """
    config = config or default_config
    holder: dict[str, SagePlugin] = {}
    if plugin is not None:
        holder["plugin"] = plugin

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = "plugin" not in holder
        if owned:
            holder["plugin"] = SagePlugin.from_config(config)
        logger.info(
            "Sage plugin ready (bin=%s, dry_run=%s, host=%s)",
            config.sage.bin,
            config.sage.dry_run,
            config.host.url,
        )
        try:
            yield
        finally:
            if owned:
                await holder.pop("plugin").aclose()

    app = FastAPI(title="Sage Plugin", version=__version__, lifespan=lifespan)
    app.include_router(create_plugin_router(lambda: holder["plugin"]))
    return app


app = create_app()


def main() -> None:
    import uvicorn

    setup_logging()
    uvicorn.run(
        "sage_plugin.main:app",
        host=default_config.server.host,
        port=default_config.server.port,
    )


if __name__ == "__main__":
    main()
