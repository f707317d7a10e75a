"""Forge smart contract development toolchain integration.

- Compile the fixture smart contracts using Forge

- Deploy the compiled artifacts using web3.py

- See `Foundry book <https://book.getfoundry.sh/>`__ for more information.
"""

import logging
from pathlib import Path
from shutil import which
from subprocess import DEVNULL, PIPE
from typing import Type

import psutil
from web3 import Web3
from web3.contract import Contract

from eth_vault_deposit.abi import get_contract

logger = logging.getLogger(__name__)


#: Crash unless forge completes in 4 minutes
#:
DEFAULT_TIMEOUT = 4 * 60


class ForgeFailed(Exception):
    """Forge command failed."""


class ContractDeploymentFailed(Exception):
    """Did not get successful tx receipt from a deployment."""

    def __init__(self, tx_hash, msg):
        super().__init__(msg)
        self.tx_hash = tx_hash


def compile_forge_project(
    project_folder: Path,
    timeout=DEFAULT_TIMEOUT,
) -> str:
    """Compile a Foundry project with `forge build`.

    Assumes standard Foundry project layout with foundry.toml, src and out.

    :param project_folder:
        Foundry project with `foundry.toml` in the root.

    :raise ForgeFailed:
        Forge returned non-zero exit code

    :return:
        Forge console output
    """
    assert isinstance(project_folder, Path), f"Got non-Path project folder: {type(project_folder)} {project_folder}"
    assert (project_folder / "foundry.toml").exists(), f"foundry.toml missing: {project_folder}"

    forge = which("forge")
    assert forge is not None, "No forge command in path, needed for the contract compilation"

    cmd_line = [forge, "build", "--root", str(project_folder.resolve())]
    logger.info("Compiling contracts with forge: %s", " ".join(cmd_line))

    proc = psutil.Popen(cmd_line, stdin=DEVNULL, stdout=PIPE, stderr=PIPE)
    stdout, stderr = proc.communicate(timeout=timeout)
    output = stdout.decode("utf-8") + stderr.decode("utf-8")

    if proc.returncode != 0:
        raise ForgeFailed(f"forge return code {proc.returncode} when running: {' '.join(cmd_line)}\nOutput is:\n{output}")

    logger.debug("forge result:\n%s", output)
    return output


def get_forge_artifact(
    project_folder: Path,
    contract_file: str,
    contract_name: str,
) -> Path:
    """Get the path of a compiled contract artifact.

    Example:

    .. code-block:: python

        path = get_forge_artifact(project_folder, "TestVault.sol", "TestVault")

    :return:
        Absolute path to `out/<contract_file>/<contract_name>.json`
    """
    artifact = (project_folder / "out" / contract_file / f"{contract_name}.json").resolve()
    assert artifact.exists(), f"Forge did not produce ABI file: {artifact}"
    return artifact


def deploy_contract(
    web3: Web3,
    contract: Path | Type[Contract],
    deployer: str,
    *constructor_args,
    gas: int = None,
) -> Contract:
    """Deploys a new contract from a compiler artifact.

    Example:

    .. code-block:: python

        token = deploy_contract(web3, artifact_path, deployer, "Test Token", "TEST", 1_000_000 * 10**18)
        print(f"Deployed ERC-20 token at {token.address}")

    :param web3:
        Web3 instance

    :param contract:
        Forge artifact path or contract proxy class

    :param deployer:
        Deployer address unlocked on the node

    :param constructor_args:
        Other arguments to pass to the contract's constructor

    :param gas:
        Gas limit.

        If not set tries to estimate and probably may hit reverts when doing so.

    :raise ContractDeploymentFailed:
        In the case we could not deploy the contract.

    :return:
        Contract proxy instance
    """
    if isinstance(contract, Path):
        contract_name = contract.stem
        Contract = get_contract(web3, contract)
    else:
        contract_name = contract.__name__
        Contract = contract

    tx_params = {"from": deployer}
    if gas:
        tx_params["gas"] = gas
    tx_hash = Contract.constructor(*constructor_args).transact(tx_params)

    tx_receipt = web3.eth.wait_for_transaction_receipt(tx_hash)
    if tx_receipt["status"] != 1:
        raise ContractDeploymentFailed(tx_hash, f"Contract {contract_name} deployment failed with args {constructor_args}, tx hash is {tx_hash.to_0x_hex()}")

    logger.info("Deployed %s at %s", contract_name, tx_receipt["contractAddress"])
    return Contract(address=tx_receipt["contractAddress"])
