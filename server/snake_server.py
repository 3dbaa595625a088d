# Authoritative Snake Server.
# Accepts any number of players; each one gets its own snake.
# All snakes share a single food item.
# Every session streams its snapshot to its client every 100 ms.

import socket
import threading
import random
import sys
import os
import logging
import argparse

# Add project root to path
current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

try:
    from common import config
    from common.game_rules import GridPoint, PlayerState
    from server.session import Session
    from server.world import World, SessionRegistry
except ImportError as e:
    print(f"Error: Could not import required modules: {e}")
    print("Ensure this file is in a folder next to the 'common' folder.")
    sys.exit(1)

# Configure logging
logging.basicConfig(level=logging.INFO, format='[SNAKE_SERVER] %(asctime)s - %(message)s')


class SnakeServer:
    """Accept loop plus the state shared by all sessions."""

    def __init__(self, host: str = config.SERVER_HOST, port: int = config.SERVER_PORT,
                 world: World | None = None, registry: SessionRegistry | None = None,
                 broadcast_interval_ms: int = config.BROADCAST_INTERVAL_MS):
        self.host = host
        self.port = port
        self.world = world or World()
        self.registry = registry or SessionRegistry()
        self.broadcast_interval_ms = broadcast_interval_ms
        self.server_socket = None
        self._stopping = threading.Event()

    def start(self) -> int:
        """Binds and listens. Returns the bound port (useful with port 0)."""
        self.server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            self.server_socket.bind((self.host, self.port))
            self.server_socket.listen()
        except (socket.error, OverflowError):
            self.server_socket.close()
            raise
        self.port = self.server_socket.getsockname()[1]
        logging.info(f"Snake Server listening on {self.host}:{self.port}...")
        logging.info(f"Grid {self.world.grid.width}x{self.world.grid.height}, "
                     f"tile {self.world.grid.tile_size}, food at {tuple(self.world.current_food())}.")
        return self.port

    def serve_forever(self):
        """Accepts connections until shutdown() is called."""
        while not self._stopping.is_set():
            try:
                client_sock, addr = self.server_socket.accept()
            except socket.error as e:
                if self._stopping.is_set():
                    break
                logging.error(f"Failed to accept connection: {e}")
                continue

            logging.info(f"Client connected from {addr}.")
            self.handle_connection(client_sock, addr)

        logging.info("Accept loop stopped.")

    def handle_connection(self, client_sock: socket.socket, addr) -> Session:
        """Creates the player, registers it and starts its session thread."""
        player = PlayerState.spawn(self.world.grid)
        session_id = self.registry.register(player)
        session = Session(
            client_sock, addr, session_id, player, self.world, self.registry,
            broadcast_interval_ms=self.broadcast_interval_ms
        )
        thread = threading.Thread(target=session.run, name=f"session-{session_id}", daemon=True)
        thread.start()
        return session

    def shutdown(self):
        """Stops accepting. Running sessions end when the process exits."""
        self._stopping.set()
        if self.server_socket:
            try:
                self.server_socket.shutdown(socket.SHUT_RDWR)
            except socket.error:
                pass
            self.server_socket.close()


# Main Function

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Multiplayer Snake Server")
    parser.add_argument('port', type=config.port_number, help='Port to listen on (0-65535)')
    parser.add_argument('--host', type=str, default=config.SERVER_HOST, help='Interface to bind')
    parser.add_argument('--seed', type=int, default=None, help='Seed for food placement')
    parser.add_argument('--food', type=int, nargs=2, metavar=('X', 'Y'), default=None,
                        help='Initial food tile in pixels, e.g. --food 75 75')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    rng = random.Random(args.seed) if args.seed is not None else None
    food = GridPoint(*args.food) if args.food else None
    try:
        world = World(rng=rng, food=food)
    except ValueError as e:
        logging.critical(f"Invalid configuration: {e}")
        sys.exit(1)

    server = SnakeServer(host=args.host, port=args.port, world=world)
    try:
        server.start()
    except (socket.error, OverflowError) as e:
        logging.critical(f"Failed to bind socket: {e}")
        sys.exit(1)

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logging.info("Shutting down snake server.")
    finally:
        server.shutdown()
        logging.info("Snake server shut down.")


if __name__ == "__main__":
    main()
