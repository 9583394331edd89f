"""
Ticket policies.

A policy decides which terms a ticket is issued with, given the user's
certified attributes, and whether a validator accepts a ticket's terms.
PPETS-ABC binds attribute conditions into the ticket; PPETS-FGP prices the
ticket from the user's category.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


class TicketPolicy(Protocol):
    service: str

    def terms_for(self, attributes: dict[str, Any]) -> dict[str, Any] | None:
        """Ticket terms, or None if the attributes do not qualify."""
        ...

    def accepts(self, terms: dict[str, Any]) -> bool:
        ...


@dataclass(frozen=True)
class AttributePolicy:
    """Attribute-based: only holders meeting min_age get a ticket."""

    service: str = "venue-entry"
    min_age: int = 18

    def terms_for(self, attributes: dict[str, Any]) -> dict[str, Any] | None:
        age = attributes.get("age")
        if not isinstance(age, int) or isinstance(age, bool) or age < self.min_age:
            return None
        # the age itself stays with the seller
        return {"policy": {"min_age": self.min_age}}

    def accepts(self, terms: dict[str, Any]) -> bool:
        return terms == {"policy": {"min_age": self.min_age}}


@dataclass(frozen=True)
class FarePolicy:
    """Fine-grained pricing: the fare depends on the passenger category."""

    service: str = "rail-journey"
    fares: dict[str, int] = field(default_factory=lambda: {
        "adult": 100,
        "child": 50,
        "senior": 60,
    })
    default_category: str = "adult"

    def terms_for(self, attributes: dict[str, Any]) -> dict[str, Any] | None:
        category = attributes.get("category", self.default_category)
        if not isinstance(category, str):
            return None
        price = self.fares.get(category)
        if price is None:
            return None
        return {"category": category, "price": price}

    def accepts(self, terms: dict[str, Any]) -> bool:
        category = terms.get("category")
        if not isinstance(category, str):
            return False
        price = self.fares.get(category)
        return price is not None and terms.get("price") == price
