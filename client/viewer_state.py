# Client-side view of one snake game.
# Updated by the network thread, read by the render loop.

import threading
import logging
from typing import Optional

from common import config
from common import protocol
from common.game_rules import Direction, GridPoint


class ViewerState:
    """Last good snapshot received from the server, plus the local heading."""

    def __init__(self, grid: config.GridConfig = config.DEFAULT_GRID):
        self.lock = threading.Lock()
        cx, cy = grid.center()
        # Shown until the first snapshot arrives
        self.body = (GridPoint(cx, cy),)
        self.food = GridPoint(grid.tile_size * 3, grid.tile_size * 3)
        self.score = 0
        self.game_over = False
        self.snapshots_received = 0
        self.direction: Optional[Direction] = None  # Nothing is sent until the first key

    def apply_line(self, line: str) -> bool:
        """
        Applies one line from the server.
        Returns False if the line was malformed and discarded.
        """
        try:
            message = protocol.decode_message(line)
        except protocol.ProtocolError as e:
            logging.warning(f"Discarding malformed line {line!r}: {e}")
            return False

        with self.lock:
            if isinstance(message, protocol.GameOver):
                self.game_over = True
            else:
                self.body = message.body
                self.food = message.food
                self.score = message.score
                self.snapshots_received += 1
        return True

    def steer(self, direction: Direction) -> bool:
        """Sets the heading to send, ignoring a reversal of the current one."""
        with self.lock:
            if self.direction is not None and direction is self.direction.opposite:
                return False
            self.direction = direction
            return True

    def pending_command(self) -> Optional[str]:
        """The command line to send on the next timer tick, if any."""
        with self.lock:
            if self.game_over or self.direction is None:
                return None
            return self.direction.value

    def snapshot(self) -> protocol.Snapshot:
        with self.lock:
            return protocol.Snapshot(body=tuple(self.body), food=self.food, score=self.score)
