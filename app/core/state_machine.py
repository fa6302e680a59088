# Finalization state constants

# Interaction Surface: Return from the processor, capture call in flight
# Entry state of every page load.
PROCESSING = "processing"

# Interaction Surface: Capture confirmed
# Terminal. Funds reach the wallet asynchronously downstream.
SUCCESS = "success"

# Interaction Surface: Missing token, declined capture or transport failure
# Terminal. Recovery is navigation or a manual reload only.
ERROR = "error"

TERMINAL_STATES = frozenset({SUCCESS, ERROR})

# Allowed edges; nothing leaves a terminal state.
TRANSITIONS = {
    PROCESSING: frozenset({SUCCESS, ERROR}),
    SUCCESS: frozenset(),
    ERROR: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


# Presentation per state: (heading, icon)
HEADINGS = {
    PROCESSING: ("Completing Payment", "spinner"),
    SUCCESS: ("Payment Successful", "check-circle"),
    ERROR: ("Payment Issue", "x-circle"),
}
