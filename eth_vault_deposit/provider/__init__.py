"""JSON-RPC backends.

- Local test backends like :py:mod:`eth_vault_deposit.provider.anvil`
"""
