"""Uvicorn server runner with custom configuration."""

import uvicorn
from uvicorn.config import LOGGING_CONFIG

from dndtracker.app import App
from dndtracker.config import Config
from dndtracker.web.server import create_fastapi_app


def run_server(app: App, config: Config) -> None:
    """Run the Uvicorn server.

    With trust_host the app sits behind a proxy (fly.dev), so the forwarded
    host and scheme become request.url, which the gate's origin check and the
    sign-in callback URL are built from.
    """
    fastapi_app = create_fastapi_app(app, config)

    log_config = LOGGING_CONFIG.copy()
    log_config["formatters"]["access"]["fmt"] = '%(asctime)s - "%(request_line)s" %(status_code)s'
    log_config["formatters"]["default"]["fmt"] = "%(asctime)s - %(levelname)s - %(message)s"

    uvicorn.run(
        fastapi_app,
        host=config.host,
        port=config.port,
        log_config=log_config,
        log_level="debug" if config.debug else "info",
        access_log=not config.production,
        proxy_headers=config.trust_host,
        forwarded_allow_ips="*" if config.trust_host else None,
    )
