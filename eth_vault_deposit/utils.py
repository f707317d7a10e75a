"""Process, port and console logging helpers for scripts and test backends."""

import logging
import os
import random
import socket
import time
from typing import Optional

import coloredlogs
import psutil


logger = logging.getLogger(__name__)

#: Dependency loggers that flood the console with every JSON-RPC request
NOISY_LOGGERS = (
    "web3.providers.HTTPProvider",
    "web3.RequestManager",
    "urllib3.connectionpool",
)


def is_localhost_port_listening(port: int, host="localhost") -> bool:
    """Does something accept TCP connections at the port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        return s.connect_ex((host, port)) == 0


def find_free_port(min_port: int = 20_000, max_port: int = 40_000, max_attempt: int = 20) -> int:
    """Pick a random localhost port nobody listens to.

    The port may still be taken by someone else before we bind it.

    :param max_attempt:
        How many random ports we try before raising

    :return:
        Port number in `[min_port, max_port)`
    """
    assert type(min_port) == int and type(max_port) == int, f"Bad port range {min_port} - {max_port}"
    assert min_port < max_port, f"Bad port range {min_port} - {max_port}"

    for _ in range(max_attempt):
        port = random.randrange(min_port, max_port)
        if not is_localhost_port_listening(port, "127.0.0.1"):
            return port
        logger.debug("Port %d in use", port)

    raise RuntimeError(f"Could not open a port in range {min_port} - {max_port}, {max_attempt} attempts")


def _drain(stream, name: str, log_level: Optional[int]) -> bytes:
    output = b""
    if stream is None:
        return output
    for line in stream.readlines():
        output += line
        if log_level is not None:
            logger.log(log_level, "%s: %s", name, line.decode("utf-8", errors="replace").rstrip())
    return output


def shutdown_hard(
    process: psutil.Popen,
    log_level: Optional[int] = None,
    check_port: Optional[int] = None,
    timeout: float = 30,
) -> tuple[bytes, bytes]:
    """SIGKILL a server process and collect what it printed.

    :param log_level:
        Also log the process output at this level

    :param check_port:
        Wait until the server port is released

    :param timeout:
        How long to wait for the port

    :return:
        stdout, stderr
    """
    if process.poll() is None:
        process.kill()

    stdout = _drain(process.stdout, "stdout", log_level)
    stderr = _drain(process.stderr, "stderr", log_level)

    if check_port is not None:
        deadline = time.time() + timeout
        while is_localhost_port_listening(check_port):
            if time.time() > deadline:
                raise AssertionError(f"Port {check_port} still open {timeout} seconds after killing process {process.pid}")
            time.sleep(0.1)

    return stdout, stderr


def setup_console_logging(
    default_log_level="warning",
    simplified_logging=False,
) -> logging.Logger:
    """Coloured console logging for scripts.

    - `LOG_LEVEL` environment variable overrides `default_log_level`
    - Per-request logging of web3.py and urllib3 is muted

    :param simplified_logging:
        Print only messages, no timestamps or logger names

    :return:
        Root logger
    """
    level_name = os.environ.get("LOG_LEVEL", default_log_level).upper()
    level = getattr(logging, level_name, None)
    assert type(level) == int, f"Unknown log level: {level_name}"

    fmt = "%(message)s" if simplified_logging else "%(asctime)s %(name)-44s %(message)s"
    coloredlogs.install(level=level, fmt=fmt, datefmt="%H:%M:%S")

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger()
