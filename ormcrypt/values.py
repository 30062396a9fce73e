from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CryptoValue:
    """A plaintext bound for comparison with an encrypted column.

    Raw ``text()`` fragments carry no column information, so their bind
    values are never encrypted automatically.  Wrap the value to opt in::

        select(User).where(text("email = :email")).params(
            email=CryptoValue("email", "user1@example.com")
        )
    """

    column: str
    value: str
