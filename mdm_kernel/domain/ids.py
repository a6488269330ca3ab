"""
Identifier generation for requests, documents and golden record codes.

Request ids are opaque strings; golden record codes are short, human-readable
and must be unique across the store (the golden record service checks the
store and retries).  Both generators are injected so tests can pin values.
"""

from __future__ import annotations

import secrets
import string
from typing import Iterator, Protocol
from uuid import uuid4

_CODE_ALPHABET = string.ascii_uppercase + string.digits


class IdGenerator(Protocol):
    def new_id(self) -> str: ...


class GoldenCodeGenerator(Protocol):
    def new_code(self) -> str: ...


class UUIDGenerator:
    """Default request id generator: 32 hex characters from uuid4."""

    def new_id(self) -> str:
        return uuid4().hex


class SequentialIdGenerator:
    """Deterministic ids for tests: ``REQ-0001``, ``REQ-0002``, ..."""

    def __init__(self, prefix: str = "REQ-", width: int = 4):
        self._prefix = prefix
        self._width = width
        self._counter = 0

    def new_id(self) -> str:
        self._counter += 1
        return f"{self._prefix}{self._counter:0{self._width}d}"


class RandomGoldenCodeGenerator:
    """``<prefix>`` followed by ``length`` random uppercase alphanumerics."""

    def __init__(self, prefix: str = "GR-", length: int = 6):
        self._prefix = prefix
        self._length = length

    def new_code(self) -> str:
        suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(self._length))
        return f"{self._prefix}{suffix}"


class FixedGoldenCodeGenerator:
    """Yields the given codes in order; used to exercise collision handling."""

    def __init__(self, codes: list[str]):
        if not codes:
            raise ValueError("FixedGoldenCodeGenerator requires at least one code")
        self._codes: Iterator[str] = iter(codes)
        self._last = codes[-1]

    def new_code(self) -> str:
        return next(self._codes, self._last)
