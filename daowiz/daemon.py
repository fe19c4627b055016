"""
Local IPFS daemon used when no IPFS API URL is configured.
"""

import logging
import subprocess
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

from .content_store import DEFAULT_IPFS_URI
from .errors import ConfigurationError, NetworkError

logger = logging.getLogger(__name__)

READY_MARKER = "API server listening"
STOP_TIMEOUT = 10


def _drain(stream) -> None:
    for line in stream:
        logger.debug(line.rstrip())


@contextmanager
def local_ipfs_daemon(command: Optional[List[str]] = None) -> Iterator[str]:
    """
    Runs `ipfs daemon` for the duration of the block.

    Yields the API URL once the daemon reports that it is listening. The
    process is terminated on every exit path.
    """
    command = command or ['ipfs', 'daemon']
    logger.debug("Starting IPFS daemon")
    try:
        proc = subprocess.Popen(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except OSError as e:
        raise ConfigurationError("could not start the ipfs daemon, pass --ipfs-rpc-uri instead", e) from e

    try:
        for line in proc.stdout:
            logger.debug(line.rstrip())
            if READY_MARKER in line:
                break
        else:
            raise NetworkError(f"ipfs daemon exited with status {proc.wait()} before it was ready")

        # Keep reading so the daemon never blocks on a full pipe
        threading.Thread(target=_drain, args=(proc.stdout,), daemon=True).start()

        yield DEFAULT_IPFS_URI
    finally:
        if proc.poll() is None:
            logger.debug("Stopping IPFS daemon")
            proc.terminate()
            try:
                proc.wait(timeout=STOP_TIMEOUT)
            except subprocess.TimeoutExpired:
                proc.kill()
                proc.wait()
