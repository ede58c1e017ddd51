"""serverpulse - live game-server status relay for the community site."""

__version__ = "0.1.0"
