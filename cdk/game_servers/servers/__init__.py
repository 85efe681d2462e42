from .minecraft import MinecraftServer

__all__ = ["MinecraftServer"]
