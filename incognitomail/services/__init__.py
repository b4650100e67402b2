"""
Services Module

Business logic layer for the application.
"""

from incognitomail.services.persistence import IncognitoData
from incognitomail.services.handle_service import HandleService
from incognitomail.services.command_actor import CommandActor
from incognitomail.services.command_facade import CommandFacade

__all__ = [
    "IncognitoData",
    "HandleService",
    "CommandActor",
    "CommandFacade",
]
