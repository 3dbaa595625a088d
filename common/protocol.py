# Implements the newline-delimited snake protocol.
# Protocol Format (ASCII, one message per line):
# - Client -> Server: UP | DOWN | LEFT | RIGHT
# - Server -> Client:
#     snake,<N>,<x0>,<y0>,...,<x(N-1)>,<y(N-1)>,apple,<ax>,<ay>,score,<S>
#     GAME_OVER   (terminal; the server closes the connection after it)

import socket
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from common import config
from common.game_rules import Direction, GridPoint
from common.message_types import (
    MSG_TYPE_SNAPSHOT, MSG_TYPE_GAME_OVER, LABEL_APPLE, LABEL_SCORE,
    FIELD_SEPARATOR, LINE_TERMINATOR, is_command,
)

# Constants

ENCODING = 'ascii'
MAX_LINE_LENGTH = config.MAX_LINE_LENGTH


class ProtocolError(ValueError):
    """A line that does not follow the wire format."""


# Message schema

@dataclass(frozen=True)
class Snapshot:
    body: tuple
    food: GridPoint
    score: int


@dataclass(frozen=True)
class GameOver:
    pass


Message = Union[Snapshot, GameOver]

# Encoding

def encode_snapshot(body: Sequence, food, score: int) -> str:
    """Builds one snapshot line (without the terminator)."""
    fields = [MSG_TYPE_SNAPSHOT, str(len(body))]
    for x, y in body:
        fields.append(str(x))
        fields.append(str(y))
    fields += [LABEL_APPLE, str(food[0]), str(food[1]), LABEL_SCORE, str(score)]
    return FIELD_SEPARATOR.join(fields)


def encode_message(message: Message) -> str:
    if isinstance(message, GameOver):
        return MSG_TYPE_GAME_OVER
    if isinstance(message, Snapshot):
        return encode_snapshot(message.body, message.food, message.score)
    raise TypeError(f"Cannot encode {type(message).__name__}")

# Decoding

def decode_command(line: str) -> Optional[Direction]:
    """
    Maps an inbound line to a Direction.
    Anything that is not exactly one of the four commands is a no-op (None).
    """
    token = line.strip()
    if not is_command(token):
        return None
    return Direction(token)


def _parse_int(token: str, what: str) -> int:
    try:
        return int(token)
    except ValueError:
        raise ProtocolError(f"{what} is not an integer: {token!r}") from None


def decode_message(line: str) -> Message:
    """
    Parses one server line into a Snapshot or GameOver.

    Raises ProtocolError if the line is malformed in any way:
    unknown header, bad length, wrong number of fields, missing labels,
    non-integer values, or a negative score.
    """
    line = line.strip()
    if line == MSG_TYPE_GAME_OVER:
        return GameOver()

    tokens = line.split(FIELD_SEPARATOR)
    if tokens[0] != MSG_TYPE_SNAPSHOT:
        raise ProtocolError(f"Unknown message header: {tokens[0]!r}")
    if len(tokens) < 2:
        raise ProtocolError("Snapshot is missing its length field")

    length = _parse_int(tokens[1], "Snake length")
    if length < 1:
        raise ProtocolError(f"Snake length must be at least 1, got {length}")

    # header, N, 2N coordinates, apple, ax, ay, score, S
    expected = 2 + 2 * length + 5
    if len(tokens) != expected:
        raise ProtocolError(f"Expected {expected} fields for length {length}, got {len(tokens)}")

    body = []
    for i in range(length):
        x = _parse_int(tokens[2 + i * 2], f"Segment {i} x")
        y = _parse_int(tokens[3 + i * 2], f"Segment {i} y")
        body.append(GridPoint(x, y))

    apple_index = 2 + length * 2
    if tokens[apple_index] != LABEL_APPLE:
        raise ProtocolError(f"Missing '{LABEL_APPLE}' label, found {tokens[apple_index]!r}")
    food = GridPoint(
        _parse_int(tokens[apple_index + 1], "Apple x"),
        _parse_int(tokens[apple_index + 2], "Apple y"),
    )

    score_index = apple_index + 3
    if tokens[score_index] != LABEL_SCORE:
        raise ProtocolError(f"Missing '{LABEL_SCORE}' label, found {tokens[score_index]!r}")
    score = _parse_int(tokens[score_index + 1], "Score")
    if score < 0:
        raise ProtocolError(f"Score cannot be negative: {score}")

    return Snapshot(body=tuple(body), food=food, score=score)

# Socket I/O

def send_line(sock: socket.socket, line: str):
    """
    Sends one message line.
    sendall() handles partial sends; a broken pipe or reset is logged and
    re-raised so the caller can end the session.
    """
    data = (line + LINE_TERMINATOR).encode(ENCODING)
    try:
        sock.sendall(data)
    except socket.error as e:
        logging.error(f"Socket error during send: {e}")
        raise


class LineReader:
    """Reads newline-terminated lines from a socket."""

    def __init__(self, sock: socket.socket, max_length: int = MAX_LINE_LENGTH):
        self.max_length = max_length
        self._file = sock.makefile('r', encoding=ENCODING, errors='replace', newline=LINE_TERMINATOR)

    def read_line(self) -> str | None:
        """
        Returns the next line without its terminator.
        Returns None if the peer disconnected or the socket failed.
        """
        try:
            line = self._file.readline(self.max_length + 1)
        except (socket.error, ValueError) as e:
            # ValueError: the file object was closed under us
            logging.warning(f"Error during recv: {e}")
            return None

        if not line:
            return None
        if not line.endswith(LINE_TERMINATOR):
            if len(line) > self.max_length:
                raise ProtocolError(f"Line exceeds {self.max_length} characters")
            # Peer closed mid-line; hand over what we got
            return line.rstrip('\r')
        return line.rstrip('\r\n')

    def close(self):
        try:
            self._file.close()
        except socket.error:
            pass
