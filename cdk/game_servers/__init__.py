from .base_stack import GameServersBaseStack
from .config import GameServersConfig
from .game_servers_stack import GameServersStack
from .networking import Networking
from .server import (
    HealthCheckProps,
    ImageProps,
    NetworkProps,
    Server,
    ServerProps,
    TaskDefinitionProps
)
from .servers.minecraft import MinecraftServer

__all__ = [
    "GameServersBaseStack",
    "GameServersConfig",
    "GameServersStack",
    "HealthCheckProps",
    "ImageProps",
    "MinecraftServer",
    "Networking",
    "NetworkProps",
    "Server",
    "ServerProps",
    "TaskDefinitionProps",
]
