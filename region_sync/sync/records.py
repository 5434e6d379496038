"""Record conversion for Region Sync.

A remote slot holds one record per region::

    {"elements": [<element record>, <element record>, ...]}

The shape of each element record is whatever the element's own encoder
produces; the converter only wraps and unwraps the sequence under the fixed
field name. Decoding is all or nothing: one bad element fails the whole
record with a DecodeFailure.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from region_sync.config import DEFAULT_FIELD_NAME
from region_sync.sync.failures import DecodeFailure


@dataclass(frozen=True)
class ElementCodec:
    """Encode/decode pair for a single element type.

    Attributes:
        encode: Element -> record (mapping of field names to primitives)
        decode: Record -> element; may raise KeyError, TypeError or ValueError
    """
    encode: Callable[[Any], Dict[str, Any]]
    decode: Callable[[Mapping[str, Any]], Any]

    @classmethod
    def for_type(cls, element_type: type) -> "ElementCodec":
        """Build a codec from a type with ``to_record()`` and ``from_record()``.

        Args:
            element_type: Class exposing ``to_record`` and a ``from_record``
                          classmethod (e.g. region_sync.cards.Card)
        """
        return cls(
            encode=lambda element: element.to_record(),
            decode=element_type.from_record,
        )


class RecordConverter:
    """Maps a sequence of elements to a slot record and back.

    Attributes:
        codec: Element codec
        field_name: Record field holding the element records
    """

    def __init__(self, codec: ElementCodec, field_name: str = DEFAULT_FIELD_NAME):
        self.codec = codec
        self.field_name = field_name

    def to_record(self, elements: Iterable[Any]) -> Dict[str, Any]:
        """Encode the complete contents of a region into a record."""
        return {self.field_name: [self.codec.encode(e) for e in elements]}

    def from_record(self, data: Optional[Any]) -> List[Any]:
        """Decode a slot record into elements.

        Args:
            data: Record as stored, or None when the slot was never written

        Returns:
            Decoded elements (empty list for an absent record)

        Raises:
            DecodeFailure: If the record or any element record is malformed
        """
        if data is None:
            return []

        if not isinstance(data, Mapping):
            raise DecodeFailure(
                f"Record must be a mapping, got {type(data).__name__}"
            )

        if self.field_name not in data:
            raise DecodeFailure(f"Record has no '{self.field_name}' field")

        raw_elements = data[self.field_name]
        if raw_elements is None:
            return []
        if isinstance(raw_elements, (str, bytes, Mapping)) or not isinstance(raw_elements, Iterable):
            raise DecodeFailure(
                f"Field '{self.field_name}' must be a sequence, "
                f"got {type(raw_elements).__name__}"
            )

        elements = []
        for index, raw in enumerate(raw_elements):
            if not isinstance(raw, Mapping):
                raise DecodeFailure(
                    f"Element {index} must be a mapping, got {type(raw).__name__}"
                )
            try:
                elements.append(self.codec.decode(raw))
            except (KeyError, TypeError, ValueError) as e:
                raise DecodeFailure(f"Element {index} is malformed: {e!r}") from e

        return elements
