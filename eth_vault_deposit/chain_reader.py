"""Chain reader capability.

The deposit preparation needs only three things from a blockchain client:

- Read a smart contract function
- Encode a function call as transaction data payload
- Estimate gas for a pending transaction

:py:class:`ChainReader` abstracts these, so that the preparation logic
can be tested with an in-memory fake instead of a live JSON-RPC node.
:py:class:`Web3ChainReader` is the production implementation on the top of web3.py.

Timeouts, retries and cancellation are the responsibility of the underlying
web3.py provider, not the reader.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Sequence

from eth_typing import BlockIdentifier, HexAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.contract.contract import Contract

from eth_vault_deposit.abi import checksum_arguments, encode_with_signature, get_deployed_contract

logger = logging.getLogger(__name__)


class ChainReader(ABC):
    """Read, encode and estimate against an EVM chain."""

    @abstractmethod
    def read_contract(self, address: HexAddress, function_signature: str, args: Sequence = ()) -> Any:
        """Call a view function of a smart contract.

        :param address:
            Smart contract address

        :param function_signature:
            Solidity function signature, e.g. `balanceOf(address)`

        :param args:
            Function arguments

        :return:
            The decoded return value
        """

    @abstractmethod
    def encode_call(self, function_signature: str, args: Sequence) -> HexBytes:
        """Encode a function call as transaction data payload."""

    @abstractmethod
    def estimate_gas(self, from_: HexAddress, to: HexAddress, data: HexBytes, value: int = 0) -> int:
        """Estimate the gas limit for a transaction.

        :return:
            Gas units
        """


class Web3ChainReader(ChainReader):
    """Chain reader using a web3.py connection.

    - Contract proxies are built from the bundled `IERC4626.json` ABI,
      which covers both the vault and its underlying ERC-20 asset

    - All reads and gas estimation are performed against the same block

    Example:

    .. code-block:: python

        web3 = Web3(HTTPProvider(json_rpc_url))
        reader = Web3ChainReader(web3)
        asset = reader.read_contract(vault_address, "asset()")
    """

    def __init__(
        self,
        web3: Web3,
        block_identifier: BlockIdentifier = "latest",
        abi_fname: str = "IERC4626.json",
    ):
        """
        :param web3:
            Connected web3 instance

        :param block_identifier:
            Block number or tag the reads and estimation are run against.

        :param abi_fname:
            ABI used to resolve function signatures to return types.
        """
        assert isinstance(web3, Web3), f"Got {type(web3)} instead of Web3"
        self.web3 = web3
        self.block_identifier = block_identifier
        self.abi_fname = abi_fname

    def __repr__(self):
        return f"<Web3ChainReader {self.web3.provider} block:{self.block_identifier}>"

    def get_contract(self, address: HexAddress | str) -> Contract:
        return get_deployed_contract(self.web3, self.abi_fname, address)

    def read_contract(self, address: HexAddress, function_signature: str, args: Sequence = ()) -> Any:
        contract = self.get_contract(address)
        func = contract.get_function_by_signature(function_signature)
        args = checksum_arguments(function_signature, args)
        logger.debug("Reading %s.%s, args %s, block %s", address, function_signature, args, self.block_identifier)
        return func(*args).call(block_identifier=self.block_identifier)

    def encode_call(self, function_signature: str, args: Sequence) -> HexBytes:
        return encode_with_signature(function_signature, args)

    def estimate_gas(self, from_: HexAddress, to: HexAddress, data: HexBytes, value: int = 0) -> int:
        tx = {
            "from": Web3.to_checksum_address(from_),
            "to": Web3.to_checksum_address(to),
            "data": HexBytes(data),
            "value": value,
        }
        gas = self.web3.eth.estimate_gas(tx, self.block_identifier)
        logger.debug("Gas estimate for %s -> %s is %d", from_, to, gas)
        return gas
