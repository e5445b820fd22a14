"""ULID helpers for identifiers minted outside the ORM (request ids)."""

import ulid


def generate_ulid() -> str:
    return str(ulid.ULID())
