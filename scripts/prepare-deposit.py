"""ERC-4626 vault deposit preparation script.

- Checks the wallet balance, allowance and vault deposit cap
- Prints the unsigned deposit transaction with an estimated gas limit
- Does not sign or broadcast anything

To run:

.. code-block:: shell

    export JSON_RPC_URL=...
    python scripts/prepare-deposit.py \
        --vault 0x0d877Dc7C8Fa3aD980DfDb18B48eC9F8768359C4 \
        --wallet 0x... \
        --amount 1000000

"""

import argparse
import logging
import os
import sys
from pprint import pformat

from web3 import HTTPProvider, Web3

from eth_vault_deposit.chain_reader import Web3ChainReader
from eth_vault_deposit.deposit import DepositPreflightFailed, DepositRequest, prepare_deposit
from eth_vault_deposit.utils import setup_console_logging


logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="Prepare an ERC-4626 vault deposit transaction.")
    parser.add_argument("--vault", type=str, required=True, help="Vault contract address")
    parser.add_argument("--wallet", type=str, required=True, help="Depositing wallet address")
    parser.add_argument("--amount", type=int, required=True, help="Raw amount of the vault asset, in its smallest unit")
    parser.add_argument("--json-rpc-url", type=str, required=False, help="Give JSON-RPC URL - otherwise picked from JSON_RPC_URL environment variable")
    parser.add_argument("--block-identifier", type=str, required=False, default="latest", help="Block number or tag to read the state at")
    parser.add_argument("--simplified-logging", action="store_true", help="Use simplified output without timestamps")
    return parser.parse_args()


def main():
    args = parse_args()

    setup_console_logging(
        default_log_level="info",
        simplified_logging=args.simplified_logging,
    )

    json_rpc_url = args.json_rpc_url or os.environ.get("JSON_RPC_URL")
    assert json_rpc_url, "Pass --json-rpc-url or set JSON_RPC_URL environment variable"

    block_identifier = args.block_identifier
    if block_identifier.isdigit():
        block_identifier = int(block_identifier)

    web3 = Web3(HTTPProvider(json_rpc_url))
    logger.info("Connected to chain %d, block %d", web3.eth.chain_id, web3.eth.block_number)

    request = DepositRequest(
        wallet=args.wallet,
        vault=args.vault,
        amount=args.amount,
    )

    try:
        tx = prepare_deposit(Web3ChainReader(web3, block_identifier=block_identifier), request)
    except DepositPreflightFailed as e:
        logger.error("Cannot deposit: %s", e)
        sys.exit(1)

    print(pformat(tx.as_transaction_dict()))


if __name__ == "__main__":
    main()
