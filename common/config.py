# Shared configuration for the snake server and viewer.
# Plain module constants; the CLIs override host/port/seed only.

import argparse
from dataclasses import dataclass

# Network
SERVER_HOST = '0.0.0.0'
SERVER_PORT = 5000

# Grid geometry (pixels). Every position is a multiple of TILE_SIZE.
GRID_WIDTH = 800
GRID_HEIGHT = 600
TILE_SIZE = 25

# Timing
BROADCAST_INTERVAL_MS = 100  # Snapshot cadence per session
COMMAND_INTERVAL_MS = 100    # How often the viewer resends its direction

# Commands a session may hold before it stops reading from its client
COMMAND_QUEUE_SIZE = 32

# Longest line accepted from a peer (a full-grid snapshot fits easily)
MAX_LINE_LENGTH = 65536


@dataclass(frozen=True)
class GridConfig:
    """Grid geometry shared by every session."""
    width: int = GRID_WIDTH
    height: int = GRID_HEIGHT
    tile_size: int = TILE_SIZE

    @property
    def columns(self) -> int:
        return self.width // self.tile_size

    @property
    def rows(self) -> int:
        return self.height // self.tile_size

    @property
    def cell_count(self) -> int:
        return self.columns * self.rows

    def center(self) -> tuple:
        """Starting head position: the middle of the grid."""
        return ((self.columns // 2) * self.tile_size, (self.rows // 2) * self.tile_size)

    def contains(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height


DEFAULT_GRID = GridConfig()


def port_number(value: str) -> int:
    """argparse type for a TCP port (0 lets the OS pick one)."""
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from None
    if not 0 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port must be 0-65535, got {port}")
    return port
