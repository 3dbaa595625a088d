"""
Tests for server/session.py - one session driven over a socket pair.
"""

import socket
import threading
import time
from collections import deque

import pytest

from common import config
from common.game_rules import Direction, GridPoint, PlayerState, DEATH_SELF
from server.session import Session, SessionState
from server.world import World, SessionRegistry

FRESH = "snake,1,400,300,apple,75,75,score,0"


class SessionHarness:
    """Runs a Session on one end of a socketpair and reads from the other."""

    def __init__(self, player=None, world=None, interval_ms=20, queue_size=config.COMMAND_QUEUE_SIZE,
                 send_buffer=None):
        self.world = world or World(food=GridPoint(75, 75))
        self.registry = SessionRegistry()
        self.player = player or PlayerState.spawn(self.world.grid)
        self.session_id = self.registry.register(self.player)

        server_sock, self.client = socket.socketpair()
        if send_buffer:
            server_sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, send_buffer)
        self.client.settimeout(3.0)
        self.lines = self.client.makefile('r', encoding='ascii', newline='\n')
        self.session = Session(server_sock, "socketpair", self.session_id, self.player,
                               self.world, self.registry, broadcast_interval_ms=interval_ms,
                               command_queue_size=queue_size)
        self.thread = threading.Thread(target=self.session.run, daemon=True)

    def start(self):
        self.thread.start()
        return self

    def read_line(self):
        return self.lines.readline().rstrip('\n')

    def send(self, command):
        self.client.sendall((command + "\n").encode('ascii'))

    def read_until(self, predicate, limit=200):
        for _ in range(limit):
            line = self.read_line()
            if predicate(line):
                return line
        pytest.fail("Expected line never arrived")

    def close(self):
        self.lines.close()
        self.client.close()
        self.thread.join(timeout=3)


@pytest.fixture
def harness():
    h = SessionHarness().start()
    yield h
    h.close()


class TestBroadcast:

    def test_first_snapshot_is_sent_immediately(self, harness):
        assert harness.read_line() == FRESH
        assert harness.session.state is SessionState.ACTIVE

    def test_ticks_without_commands_repeat_the_snapshot(self, harness):
        lines = [harness.read_line() for _ in range(4)]
        assert lines == [FRESH] * 4

    def test_snapshot_sees_food_moved_by_someone_else(self, harness):
        assert harness.read_line() == FRESH
        harness.world.try_consume(GridPoint(75, 75))
        new_food = harness.world.current_food()

        line = harness.read_until(lambda l: l != FRESH)
        assert line == f"snake,1,400,300,apple,{new_food.x},{new_food.y},score,0"


class TestCommands:

    def test_right_moves_the_head(self, harness):
        assert harness.read_line() == FRESH
        harness.send("RIGHT")
        line = harness.read_until(lambda l: l != FRESH)
        assert line == "snake,1,425,300,apple,75,75,score,0"

    def test_reverse_command_is_ignored_but_still_moves(self, harness):
        harness.send("RIGHT")
        harness.send("LEFT")
        line = harness.read_until(lambda l: l.startswith("snake,1,450,300"))
        assert line == "snake,1,450,300,apple,75,75,score,0"
        assert harness.player.direction is Direction.RIGHT

    def test_unknown_lines_are_steps_without_turning(self, harness):
        harness.send("JUMP")
        line = harness.read_until(lambda l: l != FRESH)
        assert line.startswith("snake,1,425,300,")

    def test_eating_shows_up_in_next_snapshot(self):
        h = SessionHarness(world=World(food=GridPoint(425, 300))).start()
        try:
            h.send("RIGHT")
            line = h.read_until(lambda l: l.endswith("score,1"))
            food = h.world.current_food()
            assert line == f"snake,2,425,300,400,300,apple,{food.x},{food.y},score,1"
            assert food != GridPoint(425, 300)
        finally:
            h.close()


class TestTermination:

    def test_collision_sends_one_game_over_then_closes(self):
        player = PlayerState(body=deque([GridPoint(0, 300)]), direction=Direction.LEFT)
        h = SessionHarness(player=player).start()
        try:
            assert h.read_line() == "snake,1,0,300,apple,75,75,score,0"
            h.send("LEFT")

            h.read_until(lambda l: l == "GAME_OVER")
            # Nothing but EOF after GAME_OVER
            assert h.lines.readline() == ""

            h.thread.join(timeout=3)
            assert h.session.state is SessionState.TERMINATED
            assert h.session.end_reason == "game_over"
            assert h.session_id not in h.registry
            assert player.alive is False
        finally:
            h.close()

    def test_commands_after_collision_are_dropped(self):
        player = PlayerState(body=deque([GridPoint(0, 300)]), direction=Direction.LEFT)
        h = SessionHarness(player=player).start()
        try:
            h.send("LEFT")
            h.send("UP")
            h.send("UP")
            h.read_until(lambda l: l == "GAME_OVER")
            assert h.lines.readline() == ""
            assert player.head == GridPoint(-25, 300)
        finally:
            h.close()

    def test_client_disconnect_ends_the_session(self, harness):
        assert harness.read_line() == FRESH
        harness.lines.close()
        harness.client.close()

        harness.thread.join(timeout=3)
        assert not harness.thread.is_alive()
        assert harness.session.state is SessionState.TERMINATED
        assert harness.session_id not in harness.registry
        assert harness.session.end_reason in ("disconnect", "socket_error")

    def test_running_into_own_body_sends_one_game_over(self):
        player = PlayerState(
            body=deque(GridPoint(x, y) for x, y in [
                (100, 100), (125, 100), (125, 125), (100, 125), (75, 125), (75, 100),
            ]),
            direction=Direction.LEFT,
        )
        h = SessionHarness(player=player).start()
        try:
            h.send("DOWN")
            h.read_until(lambda l: l == "GAME_OVER")
            assert h.lines.readline() == ""

            h.thread.join(timeout=3)
            assert player.death_reason == DEATH_SELF
            assert h.session.end_reason == "game_over"
            assert h.session_id not in h.registry
        finally:
            h.close()


class TestBackpressure:

    def test_client_that_never_reads_cannot_grow_the_command_queue(self):
        # Tiny send buffer and 1 ms ticks: the session blocks on write almost at once
        h = SessionHarness(interval_ms=1, queue_size=8, send_buffer=4096).start()
        # Circling keeps a one-segment snake alive forever
        payload = b"UP\nRIGHT\nDOWN\nLEFT\n" * 400000

        def flood():
            try:
                h.client.sendall(payload)
            except OSError:
                pass

        sender = threading.Thread(target=flood, daemon=True)
        sender.start()
        try:
            time.sleep(1.0)
            assert h.session.input_queue.qsize() <= 8
            # The client is pushed back instead of the server buffering its lines
            assert sender.is_alive()
            assert h.player.alive
        finally:
            h.client.shutdown(socket.SHUT_RDWR)
            sender.join(timeout=3)
            h.close()
