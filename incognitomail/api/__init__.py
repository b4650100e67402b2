"""
API Module

Transport surfaces of the server:
- public: command websocket
- control: local control methods over a Unix socket
- client: control client used by the CLI
"""
