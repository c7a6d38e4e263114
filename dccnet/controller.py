"""Shared state between the sending, receiving and printing loops."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from dccnet.frame import MAX_DATA_BYTES

NO_ID = 0xFFFF


@dataclass
class MessageController:
    """State of one DCCNET link, guarded by ``lock``.

    ``ack_cond`` is signalled when an expected acknowledgement arrives and
    ``data_cond`` when a new data or end frame arrives.  Both conditions
    share ``lock``.  ``receiver_done`` is set once the receiving loop has
    stopped, so that waiting loops do not wait forever.
    """

    waiting_ack: bool = False
    current_id: int = 0
    last_sent_id: int = NO_ID
    last_received_id: int = NO_ID
    last_received_data: bytes = b""
    received_end: bool = False
    sent_end: bool = False
    new_data_available: bool = False
    receiver_done: bool = False
    lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )
    ack_cond: threading.Condition = field(init=False, repr=False, compare=False)
    data_cond: threading.Condition = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.ack_cond = threading.Condition(self.lock)
        self.data_cond = threading.Condition(self.lock)

    @property
    def last_size_received(self) -> int:
        """Size in bytes of the last data received."""
        return len(self.last_received_data)

    def set_last_received_data(self, data: bytes) -> None:
        """Replace the last received data, keeping at most one frame's worth."""
        self.last_received_data = bytes(data)[:MAX_DATA_BYTES]