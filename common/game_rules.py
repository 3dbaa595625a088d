# Snake game rules.
# Value types (GridPoint, Direction), the per-player state, and the engine
# step that moves a snake, feeds it, and detects collisions.
# The server runs one step per command line received from a player.

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional

from common.config import GridConfig, DEFAULT_GRID


class GridPoint(NamedTuple):
    """A tile-aligned position on the grid, in pixels."""
    x: int
    y: int


class Direction(Enum):
    UP = "UP"
    DOWN = "DOWN"
    LEFT = "LEFT"
    RIGHT = "RIGHT"

    @property
    def offset(self) -> tuple:
        """(dx, dy) in tiles."""
        return _OFFSETS[self]

    @property
    def opposite(self) -> "Direction":
        return _OPPOSITES[self]


_OFFSETS = {
    Direction.UP: (0, -1),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
    Direction.RIGHT: (1, 0),
}

_OPPOSITES = {
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.LEFT: Direction.RIGHT,
    Direction.RIGHT: Direction.LEFT,
}

DEATH_WALL = "wall"
DEATH_SELF = "self"


@dataclass
class PlayerState:
    """
    One player's snake.

    Attributes:
        body: deque of GridPoint from head (index 0) to tail
        direction: current heading
        score: apples eaten
        alive: False once the snake hit a wall or itself
        death_reason: 'wall' or 'self' after a collision
    """
    body: deque
    direction: Direction = Direction.RIGHT
    score: int = 0
    alive: bool = True
    death_reason: Optional[str] = None

    @classmethod
    def spawn(cls, grid: GridConfig = DEFAULT_GRID) -> "PlayerState":
        """Fixed starting snake: one segment in the middle of the grid, heading right."""
        cx, cy = grid.center()
        return cls(body=deque([GridPoint(cx, cy)]))

    @property
    def head(self) -> GridPoint:
        return self.body[0]

    @property
    def length(self) -> int:
        return len(self.body)

    def change_direction(self, new_direction: Optional[Direction]) -> bool:
        """Change direction (prevent 180-degree turns). Returns True if applied."""
        if new_direction is None or new_direction is self.direction.opposite:
            return False
        self.direction = new_direction
        return True

    def move(self, tile_size: int) -> GridPoint:
        """
        Shift the body one tile in the current direction.
        Returns the tail position that was vacated, so the caller can
        regrow it when the snake eats.
        """
        dx, dy = self.direction.offset
        head = self.body[0]
        new_head = GridPoint(head.x + dx * tile_size, head.y + dy * tile_size)
        self.body.appendleft(new_head)
        return self.body.pop()

    def hits_itself(self) -> bool:
        head = self.body[0]
        return any(segment == head for segment in list(self.body)[1:])


@dataclass
class StepResult:
    """What happened during one engine step."""
    ate: bool = False
    collided: bool = False
    food: Optional[GridPoint] = None  # New food tile after a meal


def advance(player: PlayerState, world, command: Optional[Direction]) -> StepResult:
    """
    Apply one command to a player.

    1. Update direction (reversals and unknown commands keep the current one).
    2. Move one tile.
    3. Eat the food if the head landed on it: grow, score, relocate food.
    4. Check wall and self collisions; a collision kills the snake.

    `world` is the shared food service: it must expose `grid` and
    `try_consume(point)`.
    """
    result = StepResult()
    if not player.alive:
        result.collided = True
        return result

    grid = world.grid
    player.change_direction(command)
    vacated = player.move(grid.tile_size)

    new_food = world.try_consume(player.head)
    if new_food is not None:
        player.body.append(vacated)
        player.score += 1
        result.ate = True
        result.food = new_food

    if not grid.contains(player.head.x, player.head.y):
        player.death_reason = DEATH_WALL
    elif player.hits_itself():
        player.death_reason = DEATH_SELF

    if player.death_reason is not None:
        player.alive = False
        result.collided = True

    return result
