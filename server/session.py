# One connected player.
# Two threads per session:
# - the command thread reads lines from the socket and queues them,
# - the session thread owns the PlayerState: it applies queued commands
#   and writes a snapshot every broadcast tick.
# Only the session thread touches the player, so no lock is needed for it.

import socket
import threading
import queue
import time
import logging
from enum import Enum

from common import config
from common import protocol
from common.game_rules import PlayerState, advance

# Put on the input queue when the peer goes away
DISCONNECT = object()

# How often a blocked command thread checks whether the session ended
ENQUEUE_POLL_SECONDS = 0.1


class SessionState(Enum):
    CONNECTED = "connected"
    ACTIVE = "active"
    TERMINATED = "terminated"


class Session:
    """Owns one client connection and its snake."""

    def __init__(self, sock: socket.socket, addr, session_id: int, player: PlayerState,
                 world, registry, broadcast_interval_ms: int = config.BROADCAST_INTERVAL_MS,
                 command_queue_size: int = config.COMMAND_QUEUE_SIZE):
        self.sock = sock
        self.addr = addr
        self.session_id = session_id
        self.player = player
        self.world = world
        self.registry = registry
        self.interval = broadcast_interval_ms / 1000.0
        # Bounded so a client that never reads stops being read from too
        self.input_queue = queue.Queue(maxsize=command_queue_size)
        self.state = SessionState.CONNECTED
        self.end_reason = None
        self._command_thread = None

    # Command thread

    def _command_loop(self):
        """Blocks on the socket and forwards each line to the session thread."""
        try:
            reader = protocol.LineReader(self.sock)
        except socket.error as e:
            # Session already closed the socket
            logging.warning(f"Session {self.session_id}: cannot read from socket: {e}")
            self._enqueue(DISCONNECT)
            return

        try:
            while True:
                try:
                    line = reader.read_line()
                except protocol.ProtocolError as e:
                    logging.warning(f"Session {self.session_id}: {e}. Dropping connection.")
                    line = None

                if line is None:
                    self._enqueue(DISCONNECT)
                    break
                if not self._enqueue(protocol.decode_command(line)):
                    break
        finally:
            reader.close()

    def _enqueue(self, item) -> bool:
        """
        Blocks while the queue is full.
        Returns False if the session ended before the item could be queued.
        """
        while self.state is not SessionState.TERMINATED:
            try:
                self.input_queue.put(item, timeout=ENQUEUE_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    # Session thread

    def run(self):
        """Session main loop. Returns once the session is terminated."""
        self.state = SessionState.ACTIVE
        logging.info(f"Session {self.session_id} started for {self.addr}.")

        self._command_thread = threading.Thread(
            target=self._command_loop,
            name=f"session-{self.session_id}-commands",
            daemon=True
        )
        self._command_thread.start()

        try:
            next_tick = time.monotonic()
            while self.state is SessionState.ACTIVE:
                now = time.monotonic()
                if now >= next_tick:
                    self._broadcast()
                    next_tick += self.interval
                    if next_tick <= now:
                        # A slow write put us behind; skip the missed ticks
                        next_tick = now + self.interval
                    continue

                try:
                    item = self.input_queue.get(timeout=next_tick - now)
                except queue.Empty:
                    continue

                if item is DISCONNECT:
                    logging.warning(f"Session {self.session_id} ({self.addr}) disconnected.")
                    self.end_reason = "disconnect"
                    break

                self._process_command(item)

        except socket.error as e:
            logging.error(f"Socket error for session {self.session_id}: {e}")
            self.end_reason = "socket_error"
        except Exception as e:
            logging.error(f"Error in session {self.session_id}: {e}", exc_info=True)
            self.end_reason = "error"
        finally:
            self._terminate()

    def _process_command(self, command):
        result = advance(self.player, self.world, command)
        if result.ate:
            logging.info(f"Session {self.session_id} scored ({self.player.score}).")
        if result.collided:
            logging.info(f"Game over for session {self.session_id}: "
                         f"{self.player.death_reason} collision, score {self.player.score}.")
            self.end_reason = "game_over"
            # Stop before sending so no snapshot can follow GAME_OVER
            self.state = SessionState.TERMINATED
            protocol.send_line(self.sock, protocol.encode_message(protocol.GameOver()))

    def snapshot_line(self) -> str:
        return protocol.encode_snapshot(self.player.body, self.world.current_food(), self.player.score)

    def _broadcast(self):
        protocol.send_line(self.sock, self.snapshot_line())

    def _terminate(self):
        self.state = SessionState.TERMINATED
        self.registry.unregister(self.session_id)
        try:
            # Wakes the command thread if it is blocked in recv
            self.sock.shutdown(socket.SHUT_RDWR)
        except socket.error:
            pass
        self.sock.close()
        logging.info(f"Session {self.session_id} closed ({self.end_reason}). "
                     f"{len(self.registry)} player(s) online.")
