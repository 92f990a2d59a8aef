"""Game server package: wraps the Mexico and Lorum engines with networking."""

from .server import GameServer

__all__ = ["GameServer"]
