import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, get_prefix, settings as default_settings
from .dependencies import build_dispatcher
from .errors import MethodNotAllowedError
from .logging_config import setup_logging
from .notifications.adapter import error_payload
from .notifications.router import router as notifications_router
from .notifications.service import NotificationDispatcher

logger = logging.getLogger(__name__)


def create_app(settings: Settings = None, dispatcher: NotificationDispatcher = None) -> FastAPI:
    """
    Build the HTTP server.

    A dispatcher passed in is used as is; otherwise one is built from settings
    when the server starts, so missing credentials fail startup in strict mode.
    """
    settings = settings or default_settings
    setup_logging(settings)

    prefix = get_prefix(settings.path_prefix)
    logger.info(f"Start HTTP server with prefix: {prefix or '/'}")

    app = FastAPI(root_path=prefix, title="Push Dispatch API", version="1.0.0")
    app.state.settings = settings
    app.state.dispatcher = dispatcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Keep the {success, error} envelope for errors raised by routing itself
        if exc.status_code == 405:
            message = MethodNotAllowedError.default_message
        else:
            message = str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content=error_payload(message),
                            headers=getattr(exc, 'headers', None))

    @app.get("/health", tags=["Health"])
    async def health():
        return {
            'status': 'ok',
            'messagingConfigured': app.state.dispatcher is not None,
        }

    @app.on_event("startup")
    async def startup_event():
        """
        Build the dispatcher once per process unless one was injected
        """
        if app.state.dispatcher is None:
            app.state.dispatcher = build_dispatcher(settings)
        logger.info(f"Push dispatch service started in {settings.environment} environment")

    app.include_router(notifications_router)
    return app


app = create_app()
