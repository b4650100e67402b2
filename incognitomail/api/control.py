"""
Local Control Surface

Request/response methods served over the Unix domain socket for the CLI.
Every method takes ``{"args": ...}`` and answers ``{"result": ...}``;
failures answer with an ErrorResponse body. Commands sent here are trusted.
"""

from typing import Callable

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from incognitomail.core.exceptions import IncognitoMailException, WrongCommandException
from incognitomail.core.logging import get_logger
from incognitomail.dependencies import get_command_facade, get_handle_service
from incognitomail.schemas.rpc import ErrorResponse, RpcRequest, RpcResponse
from incognitomail.services.command_actor import RPC_SOURCE
from incognitomail.services.command_facade import CommandFacade
from incognitomail.services.handle_service import HandleService

logger = get_logger(__name__)
router = APIRouter(prefix="/rpc")


@router.post("/Stop", response_model=RpcResponse)
async def stop(request: Request, background_tasks: BackgroundTasks):
    """
    Stop the server once this response has been sent.
    """
    background_tasks.add_task(_request_stop, request.app.state.on_stop)
    return RpcResponse(result=None)


@router.post("/ListHandles", response_model=RpcResponse)
async def list_handles(
    body: RpcRequest,
    handle_service: HandleService = Depends(get_handle_service),
):
    """
    List all handles of the account whose secret is given as argument.
    """
    if not isinstance(body.args, str):
        raise WrongCommandException("ListHandles")

    handles = await handle_service.list_handles(body.args)
    return RpcResponse(result=handles)


@router.post("/SendCommand", response_model=RpcResponse)
async def send_command(
    body: RpcRequest,
    facade: CommandFacade = Depends(get_command_facade),
):
    """
    Run a free-text command with the trusted source tag.
    """
    if not isinstance(body.args, str):
        raise WrongCommandException("SendCommand")

    result = await facade.submit(RPC_SOURCE, body.args)
    return RpcResponse(result=result)


async def _request_stop(on_stop: Callable[[], None]) -> None:
    # on_stop must run on the event loop thread
    on_stop()


async def incognitomail_exception_handler(request: Request, exc: IncognitoMailException):
    """
    Handle custom IncognitoMail exceptions.
    """
    logger.debug(
        f"Control method failed: {exc.message}",
        extra={"error_code": exc.error_code, "path": request.url.path},
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.message,
            code=exc.error_code,
            detail=exc.detail,
        ).model_dump(),
    )


async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle unexpected exceptions.
    """
    logger.error(
        f"Unexpected exception: {str(exc)}",
        exc_info=True,
        extra={"path": request.url.path},
    )

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error=str(exc), code="internal_error").model_dump(),
    )


def create_control_app(
    facade: CommandFacade,
    handle_service: HandleService,
    on_stop: Callable[[], None],
) -> FastAPI:
    """
    Create the control application.

    Args:
        facade: Facade feeding the command actor
        handle_service: Service answering read-only queries
        on_stop: Called after a Stop response has been sent

    Returns:
        FastAPI: Application serving the control methods
    """
    app = FastAPI(
        title="IncognitoMail control",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.facade = facade
    app.state.handle_service = handle_service
    app.state.on_stop = on_stop

    app.include_router(router)
    app.add_exception_handler(IncognitoMailException, incognitomail_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    return app
