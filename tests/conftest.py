"""Shared fixtures.

- :py:class:`FakeChainReader` serves ERC-20 and ERC-4626 reads from memory,
  so the deposit preparation can be tested without a JSON-RPC node
"""

from typing import Any, Callable, Sequence

import pytest
from eth_typing import HexAddress
from hexbytes import HexBytes

from eth_vault_deposit.abi import encode_with_signature
from eth_vault_deposit.chain_reader import ChainReader


#: All digits, so the same in checksummed and lower case form
WALLET = "0x1111111111111111111111111111111111111111"
VAULT = "0x2222222222222222222222222222222222222222"
ASSET = "0x3333333333333333333333333333333333333333"

#: What our fake node says deposit() costs
FAKE_GAS_ESTIMATE = 72_345


class FakeChainReader(ChainReader):
    """In-memory chain state for one vault and its asset.

    Records every call made, so tests can check what was read and in which order.
    """

    def __init__(
        self,
        vault: HexAddress = VAULT,
        asset: HexAddress = ASSET,
        balances: dict[str, int] | None = None,
        allowances: dict[tuple[str, str], int] | None = None,
        max_deposit: int = 2**256 - 1,
        gas: int = FAKE_GAS_ESTIMATE,
    ):
        self.vault = vault
        self.asset = asset
        self.balances = balances or {}
        self.allowances = allowances or {}
        self.max_deposit = max_deposit
        self.gas = gas
        self.calls = []

    def read_contract(self, address: HexAddress, function_signature: str, args: Sequence = ()) -> Any:
        self.calls.append(("read", address, function_signature, tuple(args)))

        if address == self.vault:
            match function_signature:
                case "asset()":
                    return self.asset
                case "maxDeposit(address)":
                    return self.max_deposit
        elif address == self.asset:
            match function_signature:
                case "balanceOf(address)":
                    return self.balances.get(args[0], 0)
                case "allowance(address,address)":
                    return self.allowances.get((args[0], args[1]), 0)

        raise ValueError(f"Contract {address} has no function {function_signature}")

    def encode_call(self, function_signature: str, args: Sequence) -> HexBytes:
        self.calls.append(("encode", function_signature, tuple(args)))
        return encode_with_signature(function_signature, args)

    def estimate_gas(self, from_: HexAddress, to: HexAddress, data: HexBytes, value: int = 0) -> int:
        self.calls.append(("estimate", from_, to, HexBytes(data), value))
        return self.gas

    def get_read_functions(self) -> list[str]:
        return [call[2] for call in self.calls if call[0] == "read"]


@pytest.fixture()
def wallet() -> HexAddress:
    return WALLET


@pytest.fixture()
def vault() -> HexAddress:
    return VAULT


@pytest.fixture()
def asset() -> HexAddress:
    return ASSET


@pytest.fixture()
def fake_gas_estimate() -> int:
    return FAKE_GAS_ESTIMATE


@pytest.fixture()
def make_chain_reader() -> Callable[..., FakeChainReader]:
    """Create a fake chain where our wallet has given balance, allowance and deposit cap."""

    def _make(balance: int = 0, allowance: int = 0, max_deposit: int = 2**256 - 1) -> FakeChainReader:
        return FakeChainReader(
            balances={WALLET: balance},
            allowances={(WALLET, VAULT): allowance},
            max_deposit=max_deposit,
        )

    return _make
