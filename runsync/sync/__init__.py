"""State synchronization core for RunSync.

Modules:
    state       ActivityState value type and its observable holder
    protocol    wire actions, message build / parse / apply
    dispatch    hand-off onto the state-owning execution context
    messenger   reachability-gated sender (wrist)
    publisher   StateSync / LegacyStateSync (wrist)
    receiver    StateReceiver (phone)
"""
