"""Multipart form-data parts and their wire encoding."""

import mimetypes
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, replace

__all__ = ['DEFAULT_PART_CONTENT_TYPE', 'MultipartForm', 'Part', 'guess_content_type']

DEFAULT_PART_CONTENT_TYPE = 'application/octet-stream'
TEXT_PART_CONTENT_TYPE = 'text/plain; charset=utf-8'

# Types the platform mimetypes table does not always know about.
_EXTRA_TYPES = {
    '.md': 'text/markdown',
    '.webp': 'image/webp',
    '.wasm': 'application/wasm',
    '.webm': 'video/webm',
}


def guess_content_type(filename: str) -> str:
    """Guess a part's content type from its file name extension."""
    content_type, _ = mimetypes.guess_type(filename, strict=False)
    if content_type:
        return content_type
    _, dot, extension = filename.rpartition('.')
    if dot:
        return _EXTRA_TYPES.get(f'.{extension.lower()}', DEFAULT_PART_CONTENT_TYPE)
    return DEFAULT_PART_CONTENT_TYPE


@dataclass(frozen=True)
class Part:
    """One part of a multipart body.

    The field name is usually left unset and filled in from the parameter
    the part is passed through.

    Attributes:
        data: The raw part content.
        name: Form field name.
        filename: File name reported to the server, if any.
        content_type: Content type of the part; octet-stream when unset.
    """

    data: bytes
    name: str | None = None
    filename: str | None = None
    content_type: str | None = None

    @classmethod
    def text(cls, value: str, name: str | None = None) -> 'Part':
        return cls(value.encode('utf-8'), name=name, content_type=TEXT_PART_CONTENT_TYPE)

    @classmethod
    def from_bytes(cls, data: bytes, name: str | None = None) -> 'Part':
        return cls(bytes(data), name=name, content_type=DEFAULT_PART_CONTENT_TYPE)

    @classmethod
    def file(
        cls,
        filename: str,
        data: bytes,
        name: str | None = None,
        content_type: str | None = None,
    ) -> 'Part':
        """A file upload; the content type is guessed from the file name."""
        return cls(
            bytes(data),
            name=name,
            filename=filename,
            content_type=content_type or guess_content_type(filename),
        )

    def named(self, name: str) -> 'Part':
        return replace(self, name=name)


def _quote(value: str) -> str:
    return value.replace('"', '%22').replace('\r', '%0D').replace('\n', '%0A')


class MultipartForm:
    """An ordered collection of parts sharing one boundary.

    Example:
        >>> form = MultipartForm(boundary='xyz')
        >>> form.add(Part.text('hello', name='greeting'))
        >>> form.content_type
        'multipart/form-data; boundary=xyz'
    """

    def __init__(self, parts: Iterable[Part] = (), boundary: str | None = None):
        self.boundary = boundary or f'----DeclientBoundary{uuid.uuid4().hex}'
        self.parts: list[Part] = []
        for part in parts:
            self.add(part)

    def add(self, part: Part) -> None:
        if not part.name:
            raise ValueError('multipart parts need a field name')
        self.parts.append(part)

    @property
    def content_type(self) -> str:
        return f'multipart/form-data; boundary={self.boundary}'

    def encode(self) -> bytes:
        chunks = []
        for part in self.parts:
            disposition = f'Content-Disposition: form-data; name="{_quote(part.name)}"'
            if part.filename is not None:
                disposition += f'; filename="{_quote(part.filename)}"'
            chunks.append(f'--{self.boundary}\r\n'.encode())
            chunks.append(f'{disposition}\r\n'.encode())
            if part.content_type:
                chunks.append(f'Content-Type: {part.content_type}\r\n'.encode())
            chunks.append(b'\r\n')
            chunks.append(part.data)
            chunks.append(b'\r\n')
        chunks.append(f'--{self.boundary}--\r\n'.encode())
        return b''.join(chunks)
