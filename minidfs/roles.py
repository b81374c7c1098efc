"""Roles a node can take in the cluster."""

from __future__ import annotations

from enum import Enum


class Role(Enum):
    """Role of a node, with its one-byte wire value."""

    DEFAULT = 0
    MASTER = 1
    DATA = 2
    DNS = 3
    CLIENT = 4

    @classmethod
    def parse(cls, text: str) -> Role:
        """Parse a role name, ignoring case."""
        lookup = {
            "dns": cls.DNS,
            "master": cls.MASTER,
            "data": cls.DATA,
            "client": cls.CLIENT,
        }
        try:
            return lookup[text.lower()]
        except KeyError:
            raise ValueError(f"Cannot parse given string to Role. Got: {text}") from None

    @classmethod
    def from_byte(cls, value: int) -> Role:
        """Decode a role from its wire byte; the default role has no wire form."""
        if value == cls.DEFAULT.value:
            raise ValueError(f"Error as parsing to enum Role: value = {value}")
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Error as parsing to enum Role: value = {value}") from None

    def to_byte(self) -> int:
        """Encode the role as its wire byte."""
        if self is Role.DEFAULT:
            raise ValueError("Error as parsing from enum Role")
        return self.value

    def __str__(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    Role.DEFAULT: "Default",
    Role.MASTER: "Master",
    Role.DATA: "Data",
    Role.DNS: "DNS",
    Role.CLIENT: "Client",
}