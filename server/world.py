# Shared server state.
# World: the single food item every session competes for.
# SessionRegistry: live sessions and their player state.
# Each is guarded by its own lock; sessions never touch the raw values.

import random
import threading
import logging
from typing import Optional

from common.config import GridConfig, DEFAULT_GRID
from common.game_rules import GridPoint, PlayerState


class World:
    """
    The shared food service.

    All reads and writes of the food position go through the lock, so a
    broadcast never sees half of a relocation.
    """

    def __init__(self, grid: GridConfig = DEFAULT_GRID, rng: Optional[random.Random] = None,
                 food: Optional[GridPoint] = None):
        self.grid = grid
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        if food is None:
            food = self._random_tile()
        elif not self._on_grid(food):
            raise ValueError(f"Food {tuple(food)} is not a tile inside the grid")
        self._food = GridPoint(*food)

    def _on_grid(self, point) -> bool:
        x, y = point
        tile = self.grid.tile_size
        return self.grid.contains(x, y) and x % tile == 0 and y % tile == 0

    def _random_tile(self) -> GridPoint:
        tile = self.grid.tile_size
        return GridPoint(
            self._rng.randrange(self.grid.columns) * tile,
            self._rng.randrange(self.grid.rows) * tile,
        )

    def current_food(self) -> GridPoint:
        with self._lock:
            return self._food

    def try_consume(self, point) -> Optional[GridPoint]:
        """
        If `point` is the food tile, relocate the food and return the new tile.
        Otherwise return None.
        The new tile is uniformly random and may lie under a snake.
        """
        with self._lock:
            if tuple(point) != self._food:
                return None
            eaten = self._food
            new_food = self._random_tile()
            while new_food == eaten and self.grid.cell_count > 1:
                new_food = self._random_tile()
            self._food = new_food
        logging.info(f"Food eaten at {tuple(eaten)}, moved to {tuple(new_food)}.")
        return new_food


class SessionRegistry:
    """Maps session id -> PlayerState for every live session."""

    def __init__(self):
        self._sessions = {}
        self._lock = threading.Lock()
        self._counter = 0

    def register(self, player: PlayerState) -> int:
        with self._lock:
            self._counter += 1
            session_id = self._counter
            self._sessions[session_id] = player
        return session_id

    def unregister(self, session_id: int) -> Optional[PlayerState]:
        with self._lock:
            return self._sessions.pop(session_id, None)

    def get(self, session_id: int) -> Optional[PlayerState]:
        with self._lock:
            return self._sessions.get(session_id)

    def ids(self) -> list:
        with self._lock:
            return list(self._sessions)

    def __contains__(self, session_id) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
