"""Prepare ERC-4626 vault deposit transactions.

- Check the wallet has enough the underlying asset and the vault has been approved to spend it

- Check the amount fits the vault deposit cap

- Encode `deposit(uint256,address)` and estimate its gas

The resulting :py:class:`TransactionDescriptor` must be signed and broadcasted elsewhere.
"""

import logging
from dataclasses import dataclass

from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3

from eth_vault_deposit.abi import get_function_selector
from eth_vault_deposit.chain_reader import ChainReader

logger = logging.getLogger(__name__)


#: ERC-4626 deposit function we encode
DEPOSIT_FUNCTION_SIGNATURE = "deposit(uint256,address)"


class DepositPreflightFailed(Exception):
    """A deposit precondition was not met.

    The vault would revert the deposit on-chain for the same reason.
    """

    #: Human readable explanation, overridden by subclasses
    message = "Deposit pre-flight check failed"

    def __init__(self):
        super().__init__(self.message)


class NotEnoughBalanceError(DepositPreflightFailed):
    """The wallet holds less of the vault asset than it tries to deposit."""

    message = "Not enough balance"


class MissingAllowanceError(DepositPreflightFailed):
    """The wallet has not approved the vault to spend the amount."""

    message = "Not enough allowance"


class AmountExceedsMaxDepositError(DepositPreflightFailed):
    """The vault `maxDeposit()` is lower than the amount."""

    message = "Amount exceeds max deposit"


@dataclass(slots=True, frozen=True)
class DepositRequest:
    """Deposit an amount of the vault's asset from a wallet."""

    #: Wallet holding the asset, also the share receiver
    wallet: HexAddress

    #: ERC-4626 vault address
    vault: HexAddress

    #: Raw amount of the underlying asset in its smallest unit
    amount: int

    def __post_init__(self):
        assert isinstance(self.wallet, str) and self.wallet.startswith("0x"), f"Wallet must be a 0x hex string, got {self.wallet!r}"
        assert isinstance(self.vault, str) and self.vault.startswith("0x"), f"Vault must be a 0x hex string, got {self.vault!r}"
        assert type(self.amount) == int, f"Raw amount must be int, got {type(self.amount)}: {self.amount}"
        assert self.amount >= 0, f"Got negative amount {self.amount}"


@dataclass(slots=True, frozen=True)
class TransactionDescriptor:
    """Unsigned deposit transaction."""

    #: `deposit(uint256,address)` call data
    data: HexBytes

    #: Sender, the depositing wallet
    from_: HexAddress

    #: Recipient, the vault
    to: HexAddress

    #: Native currency attached, always zero
    value: int

    #: Estimated gas limit
    gas: int

    def __repr__(self):
        return f"<Deposit tx from:{self.from_} to:{self.to} value:{self.value} gas:{self.gas:,} data:{self.data.to_0x_hex()}>"

    def as_transaction_dict(self) -> dict:
        """Get the transaction as web3.py transaction params.

        Can be passed to `web3.eth.send_transaction()` or filled with nonce and gas price
        and signed with a local account.
        """
        return {
            "from": self.from_,
            "to": self.to,
            "data": self.data,
            "value": self.value,
            "gas": self.gas,
        }


def get_deposit_selector() -> HexBytes:
    """The four byte selector all prepared deposit payloads start with."""
    return get_function_selector(DEPOSIT_FUNCTION_SIGNATURE)


def prepare_deposit(
    chain_reader: ChainReader,
    request: DepositRequest,
) -> TransactionDescriptor:
    """Craft a transaction for ERC-4626 vault deposit.

    - Checks are performed in the order: balance, allowance, vault deposit cap.
      The first failing check raises and nothing after it is read.

    - The shares are received by the depositing wallet

    - The resulting payload must be signed by the wallet and broadcasted by the caller

    Example:

    .. code-block:: python

        tx_hash = token.functions.approve(vault_address, amount).transact({"from": depositor})
        assert_transaction_success(web3, tx_hash)

        tx = prepare_deposit(
            Web3ChainReader(web3),
            DepositRequest(wallet=depositor, vault=vault_address, amount=amount),
        )
        tx_hash = web3.eth.send_transaction(tx.as_transaction_dict())

    .. note ::

        The checks are an advisory pre-flight only. The vault enforces the same
        constraints when the deposit is executed, and the balance, allowance
        or deposit cap may change between the preparation and the inclusion of
        the transaction.

    :param chain_reader:
        Blockchain access

    :param request:
        What to deposit

    :raise NotEnoughBalanceError:
        If the wallet does not have enough balance to deposit the amount

    :raise MissingAllowanceError:
        If the wallet has not approved the vault for the amount

    :raise AmountExceedsMaxDepositError:
        If the amount exceeds the vault max deposit for the wallet

    :return:
        Unsigned transaction with an estimated gas limit
    """

    assert isinstance(chain_reader, ChainReader), f"Got {type(chain_reader)}"
    assert isinstance(request, DepositRequest), f"Got {type(request)}"

    wallet = Web3.to_checksum_address(request.wallet)
    vault = Web3.to_checksum_address(request.vault)
    amount = request.amount

    logger.info(
        "Preparing deposit to vault %s, raw amount %d, from %s",
        vault,
        amount,
        wallet,
    )

    asset = chain_reader.read_contract(vault, "asset()")

    balance = chain_reader.read_contract(asset, "balanceOf(address)", [wallet])
    if balance < amount:
        logger.info("Not enough %s in %s, has %d, tries to deposit %d", asset, wallet, balance, amount)
        raise NotEnoughBalanceError()

    allowance = chain_reader.read_contract(asset, "allowance(address,address)", [wallet, vault])
    if allowance < amount:
        logger.info("Vault %s allowance for %s is %d, tries to deposit %d", vault, wallet, allowance, amount)
        raise MissingAllowanceError()

    max_deposit = chain_reader.read_contract(vault, "maxDeposit(address)", [wallet])
    if amount > max_deposit:
        logger.info("Max deposit %d of vault %s is less than %d", max_deposit, vault, amount)
        raise AmountExceedsMaxDepositError()

    data = chain_reader.encode_call(DEPOSIT_FUNCTION_SIGNATURE, [amount, wallet])
    gas = chain_reader.estimate_gas(wallet, vault, data, 0)

    tx = TransactionDescriptor(
        data=HexBytes(data),
        from_=wallet,
        to=vault,
        value=0,
        gas=gas,
    )
    logger.info("Prepared deposit %s", tx)
    return tx
