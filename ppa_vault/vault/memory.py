"""
Secret buffers — mutable byte containers zeroed on scope exit.

Python cannot guarantee that immutable ``str``/``bytes`` copies are ever
wiped, so every password and derived key the engine owns lives in a
``bytearray`` wrapped by :class:`SecretBuffer` and is overwritten as soon
as the ``with`` block that acquired it ends, including on error paths.
"""
from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]


def wipe(buf: bytearray) -> None:
    """Overwrite a bytearray in place with zeros."""
    buf[:] = bytes(len(buf))


class SecretBuffer:
    """Scoped secret bytes.

    Usage::

        with SecretBuffer.from_text(password) as pw:
            key = derive(pw.view(), salt)
    """
    __slots__ = ('_data', '_cleared')

    def __init__(self, data: BytesLike):
        self._data = bytearray(data)
        self._cleared = False
        if isinstance(data, bytearray):
            wipe(data)

    @classmethod
    def from_text(cls, text: str, encoding: str = "utf-8") -> "SecretBuffer":
        return cls(text.encode(encoding))

    def view(self) -> bytearray:
        """Return the live buffer; do not keep references past the scope."""
        if self._cleared:
            raise ValueError("SecretBuffer already cleared")
        return self._data

    def clear(self) -> None:
        if self._cleared:
            return
        wipe(self._data)
        self._cleared = True

    @property
    def cleared(self) -> bool:
        return self._cleared

    def __enter__(self) -> "SecretBuffer":
        return self

    def __exit__(self, *exc) -> None:
        self.clear()

    def __del__(self):
        self.clear()

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"<SecretBuffer len={len(self._data)} cleared={self._cleared}>"
