# Message tags and command tokens used on the wire.
# Every line is newline-terminated ASCII.

# Client -> Server commands
CMD_UP = "UP"
CMD_DOWN = "DOWN"
CMD_LEFT = "LEFT"
CMD_RIGHT = "RIGHT"
VALID_COMMANDS = {CMD_UP, CMD_DOWN, CMD_LEFT, CMD_RIGHT}

# Server -> Client messages
MSG_TYPE_SNAPSHOT = "snake"
MSG_TYPE_GAME_OVER = "GAME_OVER"

# Labels inside a snapshot line
LABEL_APPLE = "apple"
LABEL_SCORE = "score"

FIELD_SEPARATOR = ","
LINE_TERMINATOR = "\n"


def is_command(token: str) -> bool:
    """Check if a stripped token is one of the four direction commands."""
    return token in VALID_COMMANDS
