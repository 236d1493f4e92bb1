"""
Outbound API clients.
"""
from .cfos import CfosClient, get_cfos_client
from .cobot import CobotClient, get_cobot_client

__all__ = ["CfosClient", "get_cfos_client", "CobotClient", "get_cobot_client"]
