"""procflow - persisted workflow execution engine.

Advances running instances of a static process graph (tasks, exclusive
gateways, start/terminate events, boundary events) one step at a time
and durably records the active flow node and its participants.
"""

__version__ = "0.1.0"
