"""eth_vault_deposit package root.

Prepare ERC-4626 vault deposit transactions.

- :py:func:`eth_vault_deposit.deposit.prepare_deposit` checks balance, allowance and the vault deposit cap
  and returns an unsigned transaction with a gas estimate

- :py:mod:`eth_vault_deposit.chain_reader` abstracts the blockchain access

"""

import sys


#: Minimum required Python version to run this package
MIN_PYTHON_VERSION = (3, 10)


def _check_python_version():
    """Try early abort if the Python version is too old."""

    # Use Python tuple comparison for version numbers
    if sys.version_info < MIN_PYTHON_VERSION:
        raise RuntimeError(f"eth-vault-deposit needs Python {MIN_PYTHON_VERSION[0]}.{MIN_PYTHON_VERSION[1]} or later")


_check_python_version()
