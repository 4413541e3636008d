"""Storage-node networking: dispatch queue, node registry, JSON-RPC client."""
