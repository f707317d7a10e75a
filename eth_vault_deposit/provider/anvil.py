"""Local Anvil test chain.

`Anvil <https://book.getfoundry.sh/reference/anvil/>`__ from the Foundry toolchain
is the chain the vault fixture contracts are deployed to in the integration tests.
Each launched Anvil is an empty dev chain with pre-funded accounts,
automining a block per transaction.

Install with:

.. code-block:: shell

    curl -L https://foundry.paradigm.xyz | bash
    foundryup
"""

import logging
import os
import shutil
import time
from dataclasses import dataclass
from subprocess import DEVNULL, PIPE
from typing import Any, Optional

import psutil
import requests
from web3 import HTTPProvider, Web3

from eth_vault_deposit.utils import find_free_port, is_localhost_port_listening, shutdown_hard

logger = logging.getLogger(__name__)


class RPCRequestError(Exception):
    """Anvil returned an error for a custom RPC method."""


def make_anvil_custom_rpc_request(web3: Web3, method: str, args: Optional[list] = None) -> Any:
    """Call an Anvil specific JSON-RPC method like `evm_snapshot`.

    :raise RPCRequestError:
        The node answered with an error
    """
    response = web3.provider.make_request(method, tuple(args or ()))
    if "error" in response:
        raise RPCRequestError(f"{method} failed: {response['error']['message']}")
    return response["result"]


@dataclass
class AnvilLaunch:
    """A running Anvil process."""

    #: Localhost port Anvil serves JSON-RPC at
    port: int

    #: Command line Anvil was started with
    cmd: list[str]

    #: JSON-RPC endpoint
    json_rpc_url: str

    #: Anvil process
    process: psutil.Popen

    def close(self, log_level: Optional[int] = None) -> tuple[bytes, bytes]:
        """Kill Anvil and wait until its port is free.

        :param log_level:
            Dump Anvil output to logging at this level

        :return:
            Anvil stdout, stderr
        """
        stdout, stderr = shutdown_hard(self.process, log_level=log_level, check_port=self.port)
        logger.info("Anvil at %s stopped", self.json_rpc_url)
        return stdout, stderr


def launch_anvil(
    cmd="anvil",
    port: int | tuple = (19999, 29999, 25),
    launch_wait_seconds=20.0,
    test_request_timeout=3.0,
) -> AnvilLaunch:
    """Start an empty Anvil chain on the background.

    Stop it with :py:meth:`AnvilLaunch.close`.

    .. code-block:: python

        @pytest.fixture(scope="module")
        def anvil() -> AnvilLaunch:
            anvil = launch_anvil()
            try:
                yield anvil
            finally:
                anvil.close()

    :param cmd:
        Anvil executable, looked up from `PATH`

    :param port:
        Fixed port, or `(min port, max port, attempts)` to pick a random free port,
        so parallel test runs do not clash.

    :param launch_wait_seconds:
        How long we poll the JSON-RPC endpoint before giving up

    :param test_request_timeout:
        Read timeout for a single readiness poll
    """

    assert shutil.which(cmd) is not None, f"{cmd} not in PATH {os.environ.get('PATH')}"

    if type(port) == tuple:
        port = find_free_port(*port)
        logger.info("Picked port %d for Anvil", port)
    else:
        assert not is_localhost_port_listening(port), f"localhost port {port} occupied, kill the old process: kill -SIGKILL $(lsof -ti:{port})"

    cmd_list = [cmd, "--port", str(port)]
    url = f"http://localhost:{port}"

    logger.info("Launching %s", " ".join(cmd_list))
    env = os.environ.copy()
    env["RUST_BACKTRACE"] = "1"
    process = psutil.Popen(cmd_list, stdin=DEVNULL, stdout=PIPE, stderr=PIPE, env=env)

    web3 = Web3(HTTPProvider(url, request_kwargs={"timeout": test_request_timeout}))
    deadline = time.time() + launch_wait_seconds
    while time.time() < deadline:
        try:
            block_number = web3.eth.block_number
            break
        except (requests.exceptions.ConnectionError, requests.exceptions.ReadTimeout):
            time.sleep(0.1)
    else:
        shutdown_hard(process, log_level=logging.ERROR, check_port=port)
        raise AssertionError(f"Anvil did not answer at {url} within {launch_wait_seconds} seconds")

    logger.info("Anvil ready at %s, block %d", url, block_number)
    return AnvilLaunch(port, cmd_list, url, process)


def snapshot(web3: Web3) -> int:
    """Take a chain state snapshot.

    :return:
        Snapshot id for :py:func:`revert`
    """
    return int(make_anvil_custom_rpc_request(web3, "evm_snapshot"), 16)


def revert(web3: Web3, snapshot_id: int) -> bool:
    """Roll the chain back to a snapshot taken with :py:func:`snapshot`."""
    return make_anvil_custom_rpc_request(web3, "evm_revert", [hex(snapshot_id)])


def is_anvil(web3: Web3) -> bool:
    """Is the node Anvil, judged by its `web3_clientVersion` like `anvil/v0.2.0`."""
    return "anvil/" in web3.client_version
