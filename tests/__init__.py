"""
Test Package for Solana Blinks

This package contains the test suite for the solana-blinks library, CLI and MCP
server. RPC nodes, action servers and the Dialect API are replaced with mocks so the
suite runs without network access.

Test Structure:
- integration/: Tests for every module, from the RPC pool up to the CLI
- integration/conftest.py: Pytest fixtures (keypairs, real solders transactions, mock RPC and HTTP clients)
"""

# Test package for solana-blinks
