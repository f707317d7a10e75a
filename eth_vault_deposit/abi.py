"""ABI loading from the bundled ABI files and Forge artifacts.

Provides functions to load ABI files and construct :py:class:`web3.contract.Contract` types.
The results are cached for the speedup.

We also provide some helper functions to deal with ABI encoding.

Bundled ABI files live in ``eth_vault_deposit/abi``:

- ``ERC20.json``: the ERC-20 token surface

- ``IERC4626.json``: the ERC-4626 vault surface, including the ERC-20 share token functions
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Sequence, Type, Union

import eth_abi
from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.contract.contract import Contract

# How big are our ABI and contract caches
_CACHE_SIZE = 512


@lru_cache(maxsize=_CACHE_SIZE)
def get_abi_by_filename(fname: str | Path) -> dict | list:
    """Reads a bundled ABI file or a compiler artifact and returns it.

    Example::

        abi = get_abi_by_filename("IERC4626.json")

    Loaded ABI files are cache in in-process memory to speed up future loading.

    :param fname:
        Bundled JSON filename, or an absolute path to a Forge/solc artifact.

    :return:
        Etherscan style ABI list, or full compiler output including `bytecode`.
    """

    path = Path(fname)
    if not path.is_absolute():
        here = Path(__file__).resolve().parent
        path = here / "abi" / path

    with open(path, "rt", encoding="utf-8") as f:
        abi = json.load(f)
    return abi


@lru_cache(maxsize=_CACHE_SIZE)
def get_contract(
    web3: Web3,
    fname: str | Path,
    bytecode: str | None = None,
) -> Type[Contract]:
    """Get Contract proxy class from ABI JSON file.

    Read ABI file from

    - Our bundled ABI files in the Python package

    - Filesystem using absolute path

    - ABI file can be a solc/Forge compiling artifact or Etherscan copy-pasted ABI.

    Any results are cached. Web3 connection is part of the cache key.

    Example:

    .. code-block:: python

        IERC4626 = get_contract(web3, "IERC4626.json")

    :param web3:
        Web3 instance

    :param fname:
        Bundled ABI filename or an absolute path to a compiler artifact.

    :param bytecode:
        Override bytecode payload for the contract

    :return:
        Contract proxy class
    """

    contract_interface = get_abi_by_filename(fname)

    if type(contract_interface) == list:
        # Etherscan
        abi = contract_interface
    else:
        # Solc output
        abi = contract_interface["abi"]

        if bytecode is None:
            bytecode = contract_interface.get("bytecode")

        if type(bytecode) == dict:
            # Forge output contains keys object, sourceMap, linkReferences
            bytecode = bytecode["object"]

    return web3.eth.contract(abi=abi, bytecode=bytecode)


def get_deployed_contract(
    web3: Web3,
    fname: str | Path,
    address: Union[HexAddress, str],
) -> Contract:
    """Get a Contract proxy object for a contract deployed at a specific address.

    :param web3:
        Web3 instance

    :param fname:
        Bundled ABI filename or an absolute path to a compiler artifact.

    :param address:
        Ethereum address of the deployed contract

    :return:
        `web3.contract.Contract` proxy
    """
    assert isinstance(web3, Web3), f"Got {type(web3)} instead of Web3"
    assert address, "get_deployed_contract() address was None"

    address = Web3.to_checksum_address(address)
    Contract = get_contract(web3, fname)
    return Contract(address)


def get_function_selector(function_signature: str) -> HexBytes:
    """Get the 4-byte selector of a Solidity function.

    Example:

    .. code-block:: python

        assert get_function_selector("deposit(uint256,address)") == HexBytes("0x6e553f65")
    """
    assert "(" in function_signature, f"Not a function signature: {function_signature}"
    return HexBytes(Web3.keccak(text=function_signature)[0:4])


def _get_argument_types(function_signature: str) -> list[str]:
    selector_text = function_signature[function_signature.find("(") + 1 : function_signature.rfind(")")]
    if not selector_text:
        return []
    return selector_text.split(",")


def checksum_arguments(function_signature: str, args: Sequence) -> list:
    """Convert address arguments of a function call to checksummed form.

    web3.py refuses non-checksummed addresses, while our callers may pass any hex case.

    :param function_signature:
        Solidity function signature, e.g. `allowance(address,address)`

    :param args:
        Argument values in the signature order

    :return:
        Arguments with `address` values checksummed, others as is
    """
    assert type(args) in (tuple, list), f"Arguments must be a list or tuple, got {type(args)}"

    arg_types = _get_argument_types(function_signature)
    assert len(arg_types) == len(args), f"{function_signature} takes {len(arg_types)} arguments, got {len(args)}"

    return [Web3.to_checksum_address(value) if arg_type == "address" else value for arg_type, value in zip(arg_types, args)]


def encode_with_signature(function_signature: str, args: Sequence) -> HexBytes:
    """Mimic Solidity's abi.encodeWithSignature() in Python.

    This is a Python equivalent for `abi.encodeWithSignature()`.

    Example:

    .. code-block:: python

        payload = encode_with_signature("deposit(uint256,address)", [100, receiver])
        assert payload[0:4] == HexBytes("0x6e553f65")

    :param function_signature:
        Solidity function signature that can be hashed to a selector.

        ABI will be extracted from this signature.

    :param args:
        Argument values to be encoded.

        Address arguments may be given in any hex case.

    :return:
        Function selector + ABI encoded arguments
    """
    values = checksum_arguments(function_signature, args)
    encoded_args = eth_abi.encode(_get_argument_types(function_signature), values)
    return HexBytes(get_function_selector(function_signature) + encoded_args)
