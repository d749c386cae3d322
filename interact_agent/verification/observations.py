"""
Observation list builder

Turns before/after page state into short factual sentences for the
observation-only verification prompt (Tier 2 and Tier 3 without a DOM).
"""
from typing import List, Optional

from interact_agent.verification.types import BeforeState, ClientObservations


def build_observation_list(
    before_state: BeforeState,
    after_url: str,
    after_dom_hash: str,
    after_active_element: Optional[str] = None,
    client_observations: Optional[ClientObservations] = None,
) -> List[str]:
    """
    List observed changes: URL, page content, focus, and what the client witnessed.

    Args:
        before_state: URL, DOM hash and active element captured before the action
        after_url: URL after the action
        after_dom_hash: compute_dom_hash() of the DOM after the action
        after_active_element: Active element description after the action
        client_observations: Network / mutation / URL flags reported by the extension

    Returns:
        Observation sentences in a fixed order
    """
    observations = []

    if before_state.url != after_url:
        observations.append(f"Navigation occurred: URL changed from {before_state.url} to {after_url}")
    else:
        observations.append("URL did not change")

    if before_state.dom_hash != after_dom_hash:
        observations.append("Page content updated (DOM changed)")
    else:
        observations.append("Page content did not change (DOM hash identical)")

    before_active = before_state.active_element
    if (before_active is not None or after_active_element is not None) and before_active != after_active_element:
        observations.append(
            f'Focus/active element changed from "{before_active or "none"}" to "{after_active_element or "none"}"'
        )

    if client_observations:
        if client_observations.did_network_occur:
            observations.append("Background network activity detected (extension witnessed)")
        if client_observations.did_dom_mutate:
            observations.append("DOM was mutated (extension witnessed)")
        if client_observations.did_url_change is not None:
            observations.append(f"Extension reported URL changed: {str(client_observations.did_url_change).lower()}")

    return observations
