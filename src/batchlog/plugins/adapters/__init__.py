"""
Delivery adapters.

An adapter performs the remote "put batch" call for one destination stream:

    await adapter.put_batch(group_name, stream_name, events, token) -> next token

It raises ``OrderingConflictError(expected_token)`` when ``token`` does not
match the destination's expectation and ``TransportError`` for every other
failure. Adapters do not retry; the batch publisher owns retry policy.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from ...core.events import LogEvent


@runtime_checkable
class DeliveryAdapter(Protocol):
    name: str

    async def put_batch(
        self,
        group_name: str,
        stream_name: str,
        events: Sequence[LogEvent],
        token: str | None,
    ) -> str | None:  # pragma: no cover - structural protocol
        ...


__all__ = ["DeliveryAdapter"]
