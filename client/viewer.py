# Snake viewer.
# Connects to the snake server, draws the latest snapshot with pygame,
# and sends the current arrow-key direction every 100 ms.

import pygame
import socket
import threading
import sys
import os
import time
import logging
import argparse

# Add project root to path BEFORE any other imports
current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from common import config
from common import protocol
from common.game_rules import Direction
from client.viewer_state import ViewerState

logging.basicConfig(level=logging.INFO, format='[SNAKE_VIEWER] %(asctime)s - %(levelname)s: %(message)s')

VIEWER_CONFIG = {
    "TIMING": {"FPS": 30},
    "COLORS": {
        "BACKGROUND": (0, 0, 0),
        "SNAKE": (0, 200, 0),
        "APPLE": (220, 0, 0),
        "TEXT": (255, 255, 255),
        "GAME_OVER": (255, 0, 0),
    },
    "FONT_SIZE": 18,
}

KEY_DIRECTIONS = {
    pygame.K_UP: Direction.UP,
    pygame.K_DOWN: Direction.DOWN,
    pygame.K_LEFT: Direction.LEFT,
    pygame.K_RIGHT: Direction.RIGHT,
}


class SnakeViewer:
    def __init__(self, host: str, port: int, grid: config.GridConfig = config.DEFAULT_GRID):
        self.host = host
        self.port = port
        self.grid = grid
        self.state = ViewerState(grid)
        self.sock = None
        self.running = True

    def connect(self):
        self.sock = socket.create_connection((self.host, self.port))
        logging.info(f"Connected to snake server at {self.host}:{self.port}")

    def _network_thread(self):
        """Reads server lines until GAME_OVER or disconnect."""
        reader = protocol.LineReader(self.sock)
        try:
            while self.running:
                line = reader.read_line()
                if line is None:
                    logging.warning("Snake server disconnected.")
                    break
                self.state.apply_line(line)
                if self.state.game_over:
                    logging.info(f"Game over! Final score: {self.state.score}")
                    break
        except protocol.ProtocolError as e:
            logging.error(f"Error in network thread: {e}")
        finally:
            reader.close()
            logging.info("Network thread exiting.")

    def _command_thread(self):
        """Resends the current direction on a fixed timer."""
        interval = config.COMMAND_INTERVAL_MS / 1000.0
        while self.running and not self.state.game_over:
            command = self.state.pending_command()
            if command:
                try:
                    protocol.send_line(self.sock, command)
                except socket.error:
                    break
            time.sleep(interval)

    def draw(self, screen, font):
        colors = VIEWER_CONFIG["COLORS"]
        tile = self.grid.tile_size
        snapshot = self.state.snapshot()

        screen.fill(colors["BACKGROUND"])
        pygame.draw.rect(screen, colors["APPLE"], pygame.Rect(snapshot.food.x, snapshot.food.y, tile, tile))
        for x, y in snapshot.body:
            pygame.draw.rect(screen, colors["SNAKE"], pygame.Rect(x, y, tile, tile))

        if self.state.game_over:
            text = font.render("GAME OVER", True, colors["GAME_OVER"])
        else:
            text = font.render(f"Score: {snapshot.score}", True, colors["TEXT"])
        screen.blit(text, (10, 10))

    def run(self):
        self.connect()

        pygame.init()
        screen = pygame.display.set_mode((self.grid.width, self.grid.height))
        pygame.display.set_caption("Snake Game - Client")
        font = pygame.font.SysFont("Arial", VIEWER_CONFIG["FONT_SIZE"], bold=True)
        clock = pygame.time.Clock()

        threading.Thread(target=self._network_thread, daemon=True).start()
        threading.Thread(target=self._command_thread, daemon=True).start()

        try:
            while self.running:
                for event in pygame.event.get():
                    if event.type == pygame.QUIT:
                        self.running = False
                    elif event.type == pygame.KEYDOWN:
                        if event.key == pygame.K_ESCAPE:
                            self.running = False
                        elif event.key in KEY_DIRECTIONS:
                            self.state.steer(KEY_DIRECTIONS[event.key])

                self.draw(screen, font)
                pygame.display.flip()
                clock.tick(VIEWER_CONFIG["TIMING"]["FPS"])
        finally:
            self.running = False
            try:
                self.sock.close()
            except socket.error:
                pass
            pygame.quit()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Snake Game Viewer")
    parser.add_argument('host', type=str, help='Snake server address')
    parser.add_argument('port', type=config.port_number, help='Snake server port')
    args = parser.parse_args(argv)

    viewer = SnakeViewer(args.host, args.port)
    try:
        viewer.run()
    except socket.error as e:
        logging.critical(f"Unable to connect to the server at {args.host}:{args.port}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
