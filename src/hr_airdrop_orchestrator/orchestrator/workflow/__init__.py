"""Workflow domain concepts.

This package holds the airdrop workflow as explicit, testable pieces:
- The aggregate state and its derived stage
- Named preconditions and the operation table
- Fee estimation, allocation, the employee registry and batched distribution

`AirdropOrchestrator` ties them together behind a single dispatch entrypoint.
"""

__all__: list[str] = []
