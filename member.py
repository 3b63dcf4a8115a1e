from __future__ import annotations

from datetime import datetime, timezone


def registration_timestamp() -> str:
    """UTC time of registration, ISO-8601 to the second. Both stores use it."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class Member:
    """A registered library user, keyed by membership id."""

    def __init__(self, membership_id: str, name: str, cpf: str | None = None, email: str | None = None,
                 phone: str | None = None, kind: str | None = None, registered_at: str | None = None) -> None:
        self.membership_id = membership_id.strip()
        self.name = name.strip()
        self.cpf = cpf
        self.email = email
        self.phone = phone
        self.kind = kind
        self.registered_at = registered_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} ({self.membership_id})"

    def to_dict(self) -> dict:
        return {
            "membership_id": self.membership_id,
            "name": self.name,
            "cpf": self.cpf,
            "email": self.email,
            "phone": self.phone,
            "kind": self.kind,
            "registered_at": self.registered_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "Member":
        return Member(
            membership_id=data["membership_id"],
            name=data["name"],
            cpf=data.get("cpf"),
            email=data.get("email"),
            phone=data.get("phone"),
            kind=data.get("kind"),
            registered_at=data.get("registered_at"),
        )
