"""
Gym Kernel

Lifecycle consistency engine for a gym's commercial records:
- Clients and training plans with bidirectional references
- Contracts with a storage-enforced single active contract per pair
- Payments with a closed state machine and signed balances
- Plan cancellation cascading to contracts, with best-effort cleanup
"""

__version__ = "0.1.0"
