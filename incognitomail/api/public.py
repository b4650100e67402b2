"""
Public Command Surface

Websocket endpoint accepting one free-text command per connection and
answering with one text message: the result, or ``error <message>``.
Commands from this surface carry the ``websocket`` source tag, so only
handle creation is allowed through it.
"""

from fastapi import APIRouter, Depends, FastAPI, WebSocket
from prometheus_client import make_asgi_app

from incognitomail.config import Settings
from incognitomail.core.exceptions import IncognitoMailException
from incognitomail.core.logging import get_logger
from incognitomail.dependencies import get_command_facade
from incognitomail.services.command_actor import WEBSOCKET_SOURCE
from incognitomail.services.command_facade import CommandFacade

logger = get_logger(__name__)


def create_router(settings: Settings) -> APIRouter:
    """
    Build the router serving the command websocket.

    Args:
        settings: Application settings

    Returns:
        APIRouter: Router with the websocket route
    """
    router = APIRouter()

    @router.websocket(settings.LISTEN_PATH)
    async def command_socket(
        websocket: WebSocket,
        facade: CommandFacade = Depends(get_command_facade),
    ):
        await websocket.accept()

        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            logger.debug("Websocket closed before sending a command")
            return

        text = message.get("text")
        if text is None and message.get("bytes") is not None:
            try:
                text = message["bytes"].decode("utf-8")
            except UnicodeDecodeError as e:
                logger.debug(f"Error receiving command from websocket: {e}")
                await websocket.send_text("error receiving command")
                await websocket.close()
                return

        try:
            reply = await facade.submit(WEBSOCKET_SOURCE, text or "")
        except IncognitoMailException as e:
            reply = f"error {e.message}"
        except Exception as e:
            logger.error(f"Unexpected error running websocket command: {e}", exc_info=True)
            # Don't expose internal errors outside development
            reply = f"error {e}" if settings.is_development else "error internal error"

        await websocket.send_text(reply)
        await websocket.close()

    return router


def create_public_app(settings: Settings, facade: CommandFacade) -> FastAPI:
    """
    Create the public application.

    Args:
        settings: Application settings
        facade: Facade feeding the command actor

    Returns:
        FastAPI: Application serving the command websocket
    """
    app = FastAPI(
        title="IncognitoMail",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.facade = facade
    app.include_router(create_router(settings))

    if settings.ENABLE_METRICS:
        app.mount(settings.METRICS_ENDPOINT, make_asgi_app())
        logger.info(f"Prometheus metrics enabled at {settings.METRICS_ENDPOINT}")

    return app
