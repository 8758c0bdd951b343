"""Serial monitor: bridges a serial port to a client's TCP socket.

Driven over stdin/stdout by an IDE or CLI with a line-oriented command
protocol (HELLO, DESCRIBE, CONFIGURE, OPEN, CLOSE, QUIT).
"""

__version__ = "0.1.0"
