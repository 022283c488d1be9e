import errno
import logging
import os
import socket

from liveserver.config import StartupError

logger = logging.getLogger(__name__)

# Windows reports WSAEADDRINUSE instead of EADDRINUSE
_ADDR_IN_USE = {errno.EADDRINUSE, getattr(errno, "WSAEADDRINUSE", errno.EADDRINUSE)}


def _open_socket(host, port):
    try:
        family, type_, proto, _, address = socket.getaddrinfo(
            host, port, type=socket.SOCK_STREAM
        )[0]
    except socket.gaierror as err:
        raise StartupError(f"Failed to resolve host {host}: {err}") from err
    sock = socket.socket(family, type_, proto)
    if os.name == "posix":
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    return sock, address


def bind_listener(host, port, backlog=128):
    """Bind a listening socket on the first free port starting at ``port``.

    Returns ``(sock, port)``. Ports already in use are skipped with a
    warning, without limit. Any other bind failure raises StartupError.
    """
    while True:
        sock, address = _open_socket(host, port)
        try:
            sock.bind(address)
            sock.listen(backlog)
        except OSError as err:
            sock.close()
            if err.errno in _ADDR_IN_USE:
                logger.warning("Port %d is already in use", port)
                port += 1
                continue
            raise StartupError(f"Failed to listen on {host}:{port}: {err}") from err
        sock.setblocking(False)
        return sock, port
