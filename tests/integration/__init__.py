"""
Integration Tests for Solana Blinks

The tests exercise each layer against mocked network boundaries:
- RPC endpoint rotation, shared connections and health checks
- Action server describe/build exchange and blink URL handling
- Versioned-first transaction decoding
- Simulate / sign / broadcast / confirm pipeline
- Wallet loading, signing and balances
- Dialect markets and positions queries
- MCP tools and the `blinks` CLI

Transactions are real solders objects; only RPC responses and HTTP replies are faked.
"""

# Integration tests for solana-blinks
