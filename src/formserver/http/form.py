"""
=============================================================================
FORM BODY DECODING
=============================================================================

POST bodies are application/x-www-form-urlencoded:

    title=Hello%20World&content=It+works%21

The decoder looks for exactly two keys, "title=" and "content=", by plain
substring search. A value runs from just after its '=' up to the next '&'
or the end of the body:

    title=Hello%20World&content=It+works%21
    ──────┬───────────  ────────┬──────────
          │                     │
     "Hello%20World"       "It+works%21"
          │                     │
     url_decode            url_decode
          ▼                     ▼
     "Hello World"         "It works!"

Order does not matter, other fields are ignored, and BOTH keys must be
present. A body with only one of them is rejected as a whole (MissingField);
it is never partially accepted.

=============================================================================
PERCENT-DECODING RULES
=============================================================================

    %XX   → the byte 0xXX            "%41" → "A"
    +     → space                    "a+b" → "a b"
    %     → kept verbatim when fewer than two characters follow it, or
            when they are not hex digits
                                     "100%" → "100%"
                                     "%zz"  → "%zz"
    other → unchanged

Decoding works on bytes, so multi-byte UTF-8 sequences like "%C3%A9" come
back together as "é" once the value is turned into text.

=============================================================================
"""

from dataclasses import dataclass

from ..exceptions import MissingField


TITLE_KEY = b"title="
CONTENT_KEY = b"content="

_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")


def url_decode(value: bytes) -> bytes:
    """
    Reverse form URL-encoding.

    Args:
        value: Encoded bytes.

    Returns:
        Decoded bytes.

    Examples:
        >>> url_decode(b"a+b%20c")
        b'a b c'
        >>> url_decode(b"50%")
        b'50%'
    """
    decoded = bytearray()
    i = 0
    length = len(value)
    while i < length:
        byte = value[i]
        if byte == 0x25:  # '%'
            pair = value[i + 1:i + 3]
            if len(pair) == 2 and pair[0] in _HEX_DIGITS and pair[1] in _HEX_DIGITS:
                decoded.append(int(pair, 16))
                i += 3
                continue
            decoded.append(byte)
        elif byte == 0x2B:  # '+'
            decoded.append(0x20)
        else:
            decoded.append(byte)
        i += 1
    return bytes(decoded)


def extract_field(body: bytes, field_pos: int) -> bytes:
    """
    Extract and decode the value of the field starting at field_pos.

    Args:
        body: The whole form body.
        field_pos: Index where the field name starts (e.g. the result of
                   body.find(b"title=")).

    Returns:
        Decoded value bytes.

    Example:
        >>> extract_field(b"title=Hello%20World&content=Hi", 0)
        b'Hello World'
    """
    value_start = body.index(b"=", field_pos) + 1
    value_end = body.find(b"&", value_start)
    if value_end == -1:
        value_end = len(body)
    return url_decode(body[value_start:value_end])


@dataclass(frozen=True)
class FormFields:
    """The two recognized form fields, decoded to text."""

    title: str
    content: str

    def record(self) -> str:
        """The text persisted for this submission."""
        return f"Title: {self.title}\nContent: {self.content}"


def decode_form(body: bytes) -> FormFields:
    """
    Decode a form body into FormFields.

    Raises:
        MissingField: If "title=" or "content=" does not occur in the body.
    """
    title_pos = body.find(TITLE_KEY)
    if title_pos == -1:
        raise MissingField("title")

    content_pos = body.find(CONTENT_KEY)
    if content_pos == -1:
        raise MissingField("content")

    return FormFields(
        title=_to_text(extract_field(body, title_pos)),
        content=_to_text(extract_field(body, content_pos)),
    )


def _to_text(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")
