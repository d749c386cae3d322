"""
LangGraph Nodes for the Interact Agent round

- verify: tiered verification of one executed action
- recover_chain: recovery decision for a partially failed chain
"""
from .recover import recover_node
from .verify import route_after_verification, verify_node

__all__ = ["recover_node", "route_after_verification", "verify_node"]
