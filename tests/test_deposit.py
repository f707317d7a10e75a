"""Deposit preparation against an in-memory chain."""

import pytest
from hexbytes import HexBytes
from requests.exceptions import ConnectionError as RequestsConnectionError

from eth_vault_deposit.abi import encode_with_signature
from eth_vault_deposit.deposit import (
    AmountExceedsMaxDepositError,
    DepositPreflightFailed,
    DepositRequest,
    MissingAllowanceError,
    NotEnoughBalanceError,
    TransactionDescriptor,
    get_deposit_selector,
    prepare_deposit,
)


def test_prepare_deposit_success(make_chain_reader, wallet, vault, fake_gas_estimate):
    """balance=1000, allowance=1000, maxDeposit=1000000, amount=100."""
    reader = make_chain_reader(balance=1000, allowance=1000, max_deposit=1_000_000)

    tx = prepare_deposit(reader, DepositRequest(wallet=wallet, vault=vault, amount=100))

    assert isinstance(tx, TransactionDescriptor)
    assert tx.from_ == wallet
    assert tx.to == vault
    assert tx.value == 0
    assert tx.gas == fake_gas_estimate
    assert tx.data[0:4] == get_deposit_selector()
    assert tx.data == encode_with_signature("deposit(uint256,address)", [100, wallet])


def test_prepare_deposit_not_enough_balance(make_chain_reader, wallet, vault):
    """balance=50, amount=100."""
    reader = make_chain_reader(balance=50, allowance=1000, max_deposit=1_000_000)

    with pytest.raises(NotEnoughBalanceError):
        prepare_deposit(reader, DepositRequest(wallet=wallet, vault=vault, amount=100))


def test_prepare_deposit_missing_allowance(make_chain_reader, wallet, vault):
    """balance=1000, allowance=0, amount=100."""
    reader = make_chain_reader(balance=1000, allowance=0, max_deposit=1_000_000)

    with pytest.raises(MissingAllowanceError):
        prepare_deposit(reader, DepositRequest(wallet=wallet, vault=vault, amount=100))


def test_prepare_deposit_exceeds_max_deposit(make_chain_reader, wallet, vault):
    """balance=1000, allowance=1000, maxDeposit=50, amount=100."""
    reader = make_chain_reader(balance=1000, allowance=1000, max_deposit=50)

    with pytest.raises(AmountExceedsMaxDepositError):
        prepare_deposit(reader, DepositRequest(wallet=wallet, vault=vault, amount=100))


@pytest.mark.parametrize("allowance,max_deposit", [(0, 0), (1000, 0), (0, 10**18), (10**18, 10**18)])
def test_balance_checked_first(make_chain_reader, wallet, vault, allowance, max_deposit):
    """Too small balance wins regardless of allowance and cap."""
    reader = make_chain_reader(balance=99, allowance=allowance, max_deposit=max_deposit)

    with pytest.raises(NotEnoughBalanceError):
        prepare_deposit(reader, DepositRequest(wallet=wallet, vault=vault, amount=100))

    # We never got further than the balance
    assert reader.get_read_functions() == ["asset()", "balanceOf(address)"]


@pytest.mark.parametrize("max_deposit", [0, 50, 10**18])
def test_allowance_checked_before_cap(make_chain_reader, wallet, vault, max_deposit):
    reader = make_chain_reader(balance=100, allowance=99, max_deposit=max_deposit)

    with pytest.raises(MissingAllowanceError):
        prepare_deposit(reader, DepositRequest(wallet=wallet, vault=vault, amount=100))

    assert reader.get_read_functions() == ["asset()", "balanceOf(address)", "allowance(address,address)"]


def test_failed_check_does_not_encode_or_estimate(make_chain_reader, wallet, vault):
    reader = make_chain_reader(balance=1000, allowance=1000, max_deposit=50)

    with pytest.raises(AmountExceedsMaxDepositError):
        prepare_deposit(reader, DepositRequest(wallet=wallet, vault=vault, amount=100))

    kinds = [call[0] for call in reader.calls]
    assert "encode" not in kinds
    assert "estimate" not in kinds


def test_reads_use_vault_asset(make_chain_reader, wallet, vault, asset):
    """Balance and allowance are read from the token the vault reports as its asset."""
    reader = make_chain_reader(balance=1000, allowance=1000)

    prepare_deposit(reader, DepositRequest(wallet=wallet, vault=vault, amount=100))

    assert reader.calls[0] == ("read", vault, "asset()", ())
    assert reader.calls[1] == ("read", asset, "balanceOf(address)", (wallet,))
    assert reader.calls[2] == ("read", asset, "allowance(address,address)", (wallet, vault))
    assert reader.calls[3] == ("read", vault, "maxDeposit(address)", (wallet,))
    assert reader.calls[4] == ("encode", "deposit(uint256,address)", (100, wallet))
    assert reader.calls[5][0:3] == ("estimate", wallet, vault)
    assert reader.calls[5][4] == 0


def test_exact_amounts_pass(make_chain_reader, wallet, vault):
    """Balance, allowance and cap equal to the amount are enough."""
    reader = make_chain_reader(balance=100, allowance=100, max_deposit=100)
    tx = prepare_deposit(reader, DepositRequest(wallet=wallet, vault=vault, amount=100))
    assert tx.gas > 0


def test_zero_amount(make_chain_reader, wallet, vault):
    reader = make_chain_reader(balance=0, allowance=0, max_deposit=0)
    tx = prepare_deposit(reader, DepositRequest(wallet=wallet, vault=vault, amount=0))
    assert tx.data == encode_with_signature("deposit(uint256,address)", [0, wallet])


def test_lower_case_addresses_are_checksummed(make_chain_reader, wallet, vault):
    reader = make_chain_reader(balance=1000, allowance=1000)
    lower_vault = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
    reader.vault = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
    reader.allowances = {(wallet, reader.vault): 1000}

    tx = prepare_deposit(reader, DepositRequest(wallet=wallet, vault=lower_vault, amount=100))
    assert tx.to == "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"


def test_prepare_deposit_idempotent(make_chain_reader, wallet, vault):
    reader = make_chain_reader(balance=1000, allowance=1000)
    request = DepositRequest(wallet=wallet, vault=vault, amount=100)

    tx_1 = prepare_deposit(reader, request)
    tx_2 = prepare_deposit(reader, request)
    assert tx_1.data == tx_2.data
    assert tx_1 == tx_2


def test_read_failure_propagates(make_chain_reader, wallet, vault):
    """Infrastructure errors are not turned to validation errors."""

    reader = make_chain_reader(balance=1000, allowance=1000)

    def _broken_read(address, function_signature, args=()):
        if function_signature == "allowance(address,address)":
            raise RequestsConnectionError("Connection reset by peer")
        return type(reader).read_contract(reader, address, function_signature, args)

    reader.read_contract = _broken_read

    with pytest.raises(RequestsConnectionError):
        prepare_deposit(reader, DepositRequest(wallet=wallet, vault=vault, amount=100))


def test_gas_estimation_failure_propagates(make_chain_reader, wallet, vault):
    reader = make_chain_reader(balance=1000, allowance=1000)

    def _broken_estimate(from_, to, data, value=0):
        raise ValueError("execution reverted")

    reader.estimate_gas = _broken_estimate

    with pytest.raises(ValueError, match="execution reverted"):
        prepare_deposit(reader, DepositRequest(wallet=wallet, vault=vault, amount=100))


def test_error_classes():
    """Error classes have fixed messages and share a base class."""
    errors = {
        NotEnoughBalanceError: "Not enough balance",
        MissingAllowanceError: "Not enough allowance",
        AmountExceedsMaxDepositError: "Amount exceeds max deposit",
    }
    for klass, message in errors.items():
        e = klass()
        assert isinstance(e, DepositPreflightFailed)
        assert isinstance(e, Exception)
        assert str(e) == message


def test_deposit_request_validation(wallet, vault):
    with pytest.raises(AssertionError):
        DepositRequest(wallet=wallet, vault=vault, amount=-1)

    with pytest.raises(AssertionError):
        DepositRequest(wallet=wallet, vault=vault, amount=1.5)

    with pytest.raises(AssertionError):
        DepositRequest(wallet="1111111111111111111111111111111111111111", vault=vault, amount=1)

    with pytest.raises(AssertionError):
        DepositRequest(wallet=bytes.fromhex(wallet[2:]), vault=vault, amount=1)

    with pytest.raises(AssertionError):
        DepositRequest(wallet=wallet, vault=None, amount=1)


def test_transaction_dict(make_chain_reader, wallet, vault, fake_gas_estimate):
    reader = make_chain_reader(balance=1000, allowance=1000)
    tx = prepare_deposit(reader, DepositRequest(wallet=wallet, vault=vault, amount=100))

    tx_dict = tx.as_transaction_dict()
    assert tx_dict == {
        "from": wallet,
        "to": vault,
        "data": tx.data,
        "value": 0,
        "gas": fake_gas_estimate,
    }
    assert isinstance(tx_dict["data"], HexBytes)


def test_transaction_repr(make_chain_reader, wallet, vault):
    reader = make_chain_reader(balance=1000, allowance=1000)
    tx = prepare_deposit(reader, DepositRequest(wallet=wallet, vault=vault, amount=100))
    assert "data:0x6e553f65" in repr(tx)
    assert f"to:{vault}" in repr(tx)


def test_deposit_selector():
    assert get_deposit_selector() == HexBytes("0x6e553f65")
