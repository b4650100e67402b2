"""
Dependency Injection

FastAPI dependencies handing out the service instances the supervisor
attached to each application's state.
"""

from fastapi.requests import HTTPConnection

from incognitomail.services.command_facade import CommandFacade
from incognitomail.services.handle_service import HandleService


def get_command_facade(conn: HTTPConnection) -> CommandFacade:
    """
    Get the command facade.

    Returns:
        CommandFacade: Facade feeding the command actor
    """
    return conn.app.state.facade


def get_handle_service(conn: HTTPConnection) -> HandleService:
    """
    Get the handle service for read-only queries.

    Returns:
        HandleService: Handle service
    """
    return conn.app.state.handle_service
