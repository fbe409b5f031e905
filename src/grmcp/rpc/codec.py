"""Dynamic message codec — JSON text to and from descriptor-built messages.

Message classes are generated at runtime from descriptors, so no compiled
``_pb2`` modules are needed for the target's schema.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import TYPE_CHECKING

from google.protobuf import json_format, message_factory

from grmcp.errors import EncodingError, RequestExhaustedError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from google.protobuf.descriptor import Descriptor
    from google.protobuf.descriptor_pool import DescriptorPool
    from google.protobuf.message import Message


def message_class(desc: Descriptor) -> type[Message]:
    """Return the concrete message class for *desc*."""
    return message_factory.GetMessageClass(desc)


def encode(json_text: str, desc: Descriptor, pool: DescriptorPool | None = None) -> Message:
    """Parse *json_text* into a new message of type *desc*.

    Blank text yields an empty message. Unknown fields are rejected.

    Raises:
        EncodingError: If the text is not JSON or does not fit the schema.
    """
    message = message_class(desc)()
    try:
        json_format.Parse(json_text if json_text.strip() else "{}", message, descriptor_pool=pool)
    except json_format.ParseError as exc:
        raise EncodingError(f"Failed to parse request JSON: {exc}") from exc
    return message


def decode(message: Message, pool: DescriptorPool | None = None) -> str:
    """Render *message* as compact single-line JSON with declared field names."""
    payload = json_format.MessageToDict(
        message,
        preserving_proto_field_name=True,
        descriptor_pool=pool,
    )
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def render_responses(messages: Iterable[Message], pool: DescriptorPool | None = None) -> str:
    """Render each message on its own line, in order, each followed by a newline."""
    return "".join(decode(message, pool) + "\n" for message in messages)


class SupplierState(str, Enum):
    """Lifecycle of a :class:`SingleMessageSupplier`."""

    UNCONSUMED = "unconsumed"
    CONSUMED = "consumed"


class SingleMessageSupplier:
    """Supplies exactly one request message built from JSON text.

    The first :meth:`supply` moves the supplier to ``CONSUMED``, whether or
    not encoding succeeds; any further call raises
    :class:`~grmcp.errors.RequestExhaustedError`. Iterating yields the one
    message, which is how streaming request bodies are fed.
    """

    def __init__(
        self,
        json_text: str,
        desc: Descriptor,
        pool: DescriptorPool | None = None,
    ) -> None:
        self._json_text = json_text
        self._desc = desc
        self._pool = pool
        self._state = SupplierState.UNCONSUMED

    @property
    def state(self) -> SupplierState:
        return self._state

    def supply(self) -> Message:
        if self._state is SupplierState.CONSUMED:
            raise RequestExhaustedError
        self._state = SupplierState.CONSUMED
        return encode(self._json_text, self._desc, self._pool)

    def __iter__(self) -> Iterator[Message]:
        return self

    def __next__(self) -> Message:
        try:
            return self.supply()
        except RequestExhaustedError:
            raise StopIteration from None
