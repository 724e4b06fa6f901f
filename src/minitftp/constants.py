from __future__ import annotations

RRQ = 1
DATA = 3
ACK = 4
ERROR = 5

BLOCK_SIZE = 512
DATA_HEADER_LEN = 2  # opcode, block
MAX_DATA_PACKET = DATA_HEADER_LEN + BLOCK_SIZE
MAX_DATAGRAM = 1472  # ethernet-safe UDP payload

FIRST_BLOCK = 1
LAST_BLOCK = 255

CLIENT_TIMEOUT_S = 6.0
SERVER_TIMEOUT_S = 1.0
MAX_SEND_ATTEMPTS = 5
