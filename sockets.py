"""Sockets, connections and the two propagation primitives.

Sockets live in a SocketArena and are addressed by integer handles. Connections are
stored as a partner side table, so a socket never holds a reference to another socket.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from catalog import PartKind
from errors import TypeMismatch
from flow_maps import UNBOUNDED

_LOGGER = logging.getLogger("satisflow")


class Direction(Enum):
    """which way material crosses a socket"""

    INPUT = "input"
    OUTPUT = "output"


@dataclass
class Socket:
    """a typed connection endpoint owned by exactly one node"""

    handle: int
    node: int
    direction: Direction
    accepted_kind: PartKind
    material: Optional[str] = None
    flow: float = 0.0
    max_permitted: float = UNBOUNDED

    @property
    def is_input(self) -> bool:
        return self.direction is Direction.INPUT

    @property
    def is_output(self) -> bool:
        return self.direction is Direction.OUTPUT


def _check_flow_value(value: float, what: str) -> None:
    """Reject negative or NaN flow values.

    Raises:
        ValueError: if value is negative or NaN
    """
    if math.isnan(value) or value < 0:
        raise ValueError(f"Invalid {what} {value}. Must be a nonnegative number.")


class SocketArena:
    """Owner of every socket in a network and of the connection side table."""

    def __init__(self):
        """Create an empty arena.

        Postcondition:
            self.sockets is empty
            no connections exist
        """
        self.sockets: list[Socket] = []
        self._partners: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self.sockets)

    def create(self, node: int, direction: Direction, kind: PartKind) -> int:
        """Create a socket for a node.

        Precondition:
            node is the handle of the owning node

        Postcondition:
            a new unconnected socket exists with no material, zero flow and no limit
            returns its handle

        Args:
            node: owning node handle
            direction: INPUT or OUTPUT, fixed for the socket's lifetime
            kind: accepted part kind, fixed for the socket's lifetime

        Returns:
            handle of the new socket
        """
        handle = len(self.sockets)
        self.sockets.append(Socket(handle, node, direction, kind))
        return handle

    def get(self, handle: int) -> Socket:
        """Get a socket by handle.

        Raises:
            IndexError: if handle is not a socket of this arena
        """
        if handle < 0 or handle >= len(self.sockets):
            raise IndexError(f"Socket with handle {handle} does not exist.")
        return self.sockets[handle]

    def partner(self, handle: int) -> Optional[int]:
        """Get the handle of the socket connected to handle, or None."""
        self.get(handle)
        return self._partners.get(handle)

    def connect(self, a: int, b: int) -> None:
        """Connect an output socket to an input socket, in either argument order.

        Precondition:
            a and b are socket handles of this arena

        Postcondition:
            any previous connection of a or b is severed
            a and b are each other's partner

        Args:
            a: one socket handle
            b: the other socket handle

        Raises:
            TypeMismatch: if both sockets share a direction or accept different kinds
        """
        first, second = self.get(a), self.get(b)
        if first.direction is second.direction:
            raise TypeMismatch(
                f"Cannot connect sockets {a} and {b}: both are {first.direction.value} sockets."
            )
        if first.accepted_kind is not second.accepted_kind:
            raise TypeMismatch(
                f"Cannot connect sockets {a} and {b}: "
                f"{first.accepted_kind.value} and {second.accepted_kind.value} do not match."
            )
        self.disconnect(a)
        self.disconnect(b)
        self._partners[a] = b
        self._partners[b] = a
        _LOGGER.debug("Connected socket %d to socket %d", a, b)

    def disconnect(self, handle: int) -> None:
        """Sever the connection of handle, if any, on both sides."""
        other = self.partner(handle)
        if other is None:
            return
        del self._partners[handle]
        del self._partners[other]
        _LOGGER.debug("Disconnected socket %d from socket %d", handle, other)

    def connections(self) -> list[tuple[int, int]]:
        """List every connection as (output handle, input handle), ordered by output."""
        return sorted(
            (handle, other)
            for handle, other in self._partners.items()
            if self.sockets[handle].is_output
        )

    def set_permitted_limit(self, handle: int, value: float) -> None:
        """Bound the flow through a socket and its partner.

        This is the only way backpressure travels upstream: an input socket's limit
        lands on the supplier's output socket.

        Precondition:
            value >= 0, math.inf meaning unbounded

        Postcondition:
            socket.max_permitted == value
            the connected partner, if any, has max_permitted == value

        Args:
            handle: socket handle
            value: maximum permitted flow in units per minute

        Raises:
            ValueError: if value is negative or NaN
        """
        _check_flow_value(value, "permitted limit")
        self.get(handle).max_permitted = value
        other = self._partners.get(handle)
        if other is not None:
            self.sockets[other].max_permitted = value

    def propagate_flow(self, handle: int, material: Optional[str], flow: float) -> None:
        """Publish material and flow on an output socket and its connected input.

        Precondition:
            handle is an output socket
            flow >= 0

        Postcondition:
            socket.material == material and socket.flow == flow
            the connected input socket, if any, carries the same material and flow

        Args:
            handle: output socket handle
            material: part id, or None when nothing flows
            flow: units per minute

        Raises:
            TypeMismatch: if handle is an input socket
            ValueError: if flow is negative or NaN
        """
        socket = self.get(handle)
        if not socket.is_output:
            raise TypeMismatch(f"Socket {handle} is an input socket and cannot propagate flow.")
        _check_flow_value(flow, "flow")
        socket.material = material
        socket.flow = flow
        other = self._partners.get(handle)
        if other is not None:
            downstream = self.sockets[other]
            downstream.material = material
            downstream.flow = flow
