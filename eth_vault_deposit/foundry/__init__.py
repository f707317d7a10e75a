"""Foundry toolchain integration."""
