"""Validation of ACL tag names."""

from __future__ import annotations


class InvalidTagFormatError(ValueError):
    """Raised when a tag name is not of the form ``tag:<lowercase-name>``."""


def validate_tag(tag: str) -> None:
    """Raise InvalidTagFormatError unless the tag is well formed."""
    if not tag.startswith("tag:"):
        raise InvalidTagFormatError("tag must start with the string 'tag:'")
    if tag.lower() != tag:
        raise InvalidTagFormatError("tag should be lowercase")
    if len(tag.split()) > 1:
        raise InvalidTagFormatError("tag should not contains space")