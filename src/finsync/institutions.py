"""
Target institutions and connector-name matching.

Connector names in the provider catalog vary ("XP Investimentos CCTVM S.A.",
"Nu Bank"). Each target institution lists exact aliases and looser search
terms; the first configured institution that matches a name wins.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pydantic import BaseModel, Field

logger = logging.getLogger("finsync.institutions")


class TargetInstitution(BaseModel):
    """An institution FinSync reports on."""

    name: str = Field(description="Canonical display name")
    search_terms: list[str] = Field(default_factory=list, description="Case-insensitive substrings")
    connector_names: list[str] = Field(default_factory=list, description="Exact connector aliases")


TARGET_INSTITUTIONS: list[TargetInstitution] = [
    TargetInstitution(
        name="Nubank",
        search_terms=["nubank", "nu", "nu bank"],
        connector_names=["Nubank", "Nu Bank", "Nu", "Nubank S.A."],
    ),
    TargetInstitution(
        name="Bradesco",
        search_terms=["bradesco"],
        connector_names=["Bradesco", "Banco Bradesco S.A.", "Bradesco S.A."],
    ),
    TargetInstitution(
        name="XP",
        search_terms=["xp", "xp investimentos", "xp inc"],
        connector_names=["XP Investimentos", "XP Inc", "XP", "XP Investimentos CCTVM S.A."],
    ),
    TargetInstitution(
        name="BTG",
        search_terms=["btg", "btg banking", "btg pactual", "btg investimentos"],
        connector_names=["BTG Pactual", "BTG Banking", "BTG Investimentos", "BTG", "Banco BTG Pactual S.A."],
    ),
]


def matches(connector_name: str, target: TargetInstitution) -> bool:
    """Check whether a connector name refers to ``target``.

    An exact alias match wins; otherwise any search term contained in the
    name, or a name contained in a search term, is a match.
    """
    name = connector_name.strip().lower()
    if not name:
        return False

    if any(alias.lower() == name for alias in target.connector_names):
        return True

    return any(
        term.lower() in name or name in term.lower()
        for term in target.search_terms
    )


def resolve_by_connector_name(
    connector_name: str,
    targets: Sequence[TargetInstitution] | None = None,
) -> TargetInstitution | None:
    """Return the first target, in list order, that ``connector_name`` matches."""
    for target in targets if targets is not None else TARGET_INSTITUTIONS:
        if matches(connector_name, target):
            return target
    logger.debug("No target institution for connector %r", connector_name)
    return None


def find_target_institution(
    name: str,
    targets: Sequence[TargetInstitution] | None = None,
) -> TargetInstitution | None:
    """Look up a target institution by its canonical display name."""
    for target in targets if targets is not None else TARGET_INSTITUTIONS:
        if target.name == name:
            return target
    return None
