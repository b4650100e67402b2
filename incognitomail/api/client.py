"""
Control Client

Client side of the local control surface, used by the CLI to talk to a
running server over its Unix domain socket.
"""

from typing import Any, List, Optional

import httpx

from incognitomail.core.exceptions import IncognitoMailException


class ControlClient:
    """Calls control methods on a running server."""

    def __init__(self, socket_path: str, timeout: Optional[float] = None, transport: Optional[httpx.BaseTransport] = None):
        self.client = httpx.Client(
            transport=transport or httpx.HTTPTransport(uds=socket_path),
            base_url="http://incognitomail",
            timeout=timeout,
        )

    def __enter__(self) -> "ControlClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    def call(self, method: str, args: Any = None) -> Any:
        """
        Call a control method.

        Args:
            method: Method name (Stop, ListHandles, SendCommand)
            args: Method argument

        Returns:
            Any: The method's result

        Raises:
            IncognitoMailException: If the server answered with an error
            httpx.HTTPError: If the server could not be reached
        """
        response = self.client.post(f"/rpc/{method}", json={"args": args})

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {}
            raise IncognitoMailException(
                message=body.get("error", response.reason_phrase),
                status_code=response.status_code,
                error_code=body.get("code", "internal_error"),
                detail=body.get("detail"),
            )

        return response.json().get("result")

    def stop(self) -> None:
        self.call("Stop")

    def list_handles(self, secret: str) -> List[str]:
        return self.call("ListHandles", secret) or []

    def send_command(self, text: str) -> str:
        return self.call("SendCommand", text)
