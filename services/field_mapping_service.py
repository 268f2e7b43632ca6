"""
Column mapping for article imports.

Infers source column -> article field mappings from header names
and holds the user's edits to them.

Auto-mapping is a priority-ordered decision list (AUTO_MAPPING_RULES).
A header is tested against the rules in order and the first match
wins, so "Min Rate" maps to base_rate (rule 3) rather than
min_quantity (rule 7). Headers that match several rules are
reported by find_ambiguous_headers().
"""

from dataclasses import dataclass
import re
from typing import Iterable, Optional, Union

import structlog

from exceptions import InvalidTargetFieldError
from models.article_import import (
    FieldMapping,
    REQUIRED_TARGET_FIELDS,
    TARGET_FIELD_NAMES,
    TransformKind,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MappingRule:
    """Header keywords -> target field (+ transform)."""
    keywords: tuple[str, ...]
    target_field: str
    transform: TransformKind = TransformKind.NONE

    def matches(self, normalized_header: str) -> bool:
        return any(keyword in normalized_header for keyword in self.keywords)


# Order is the tie-break. Do not reorder.
AUTO_MAPPING_RULES: tuple[MappingRule, ...] = (
    MappingRule(("name", "article"), "name"),
    MappingRule(("desc",), "description"),
    MappingRule(("rate", "price"), "base_rate", TransformKind.NUMBER),
    MappingRule(("hsn",), "hsn_code"),
    MappingRule(("tax", "gst"), "tax_rate", TransformKind.NUMBER),
    MappingRule(("unit", "uom"), "unit_of_measure"),
    MappingRule(("min", "quantity"), "min_quantity", TransformKind.NUMBER),
    MappingRule(("fragile",), "is_fragile", TransformKind.BOOLEAN),
    MappingRule(("special", "handling"), "requires_special_handling", TransformKind.BOOLEAN),
    MappingRule(("note", "remark"), "notes"),
)

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]")


def normalize_header(header: str) -> str:
    """
    Lowercase and keep only a-z/0-9.

    "Base Rate (INR)" -> "baserateinr"
    """
    return _NON_ALPHANUMERIC.sub("", str(header).lower())


def matching_rules(header: str) -> list[MappingRule]:
    """Every rule matching the header, in priority order."""
    normalized = normalize_header(header)
    return [rule for rule in AUTO_MAPPING_RULES if rule.matches(normalized)]


def find_ambiguous_headers(headers: Iterable[str]) -> dict[str, list[str]]:
    """
    Headers matching more than one rule.

    Returns:
        {header: [target fields in priority order]}; the first entry is
        the one auto_map() picked
    """
    ambiguous: dict[str, list[str]] = {}
    for header in headers:
        rules = matching_rules(header)
        if len(rules) > 1:
            ambiguous[header] = [rule.target_field for rule in rules]
    return ambiguous


def auto_map(headers: Iterable[str]) -> list[FieldMapping]:
    """
    Infer mappings for a header list.

    Args:
        headers: Source columns in file order

    Returns:
        One FieldMapping per matched header, in header order.
        Unmatched headers are left out.
    """
    headers = list(headers)
    mappings: list[FieldMapping] = []
    seen: set[str] = set()

    for header in headers:
        if header in seen:
            continue
        seen.add(header)

        rules = matching_rules(header)
        if not rules:
            continue
        if len(rules) > 1:
            logger.warning(
                "ambiguous_header_mapping",
                header=header,
                chosen=rules[0].target_field,
                candidates=[rule.target_field for rule in rules]
            )
        rule = rules[0]
        mappings.append(FieldMapping(
            source_field=header,
            target_field=rule.target_field,
            transform=rule.transform,
        ))

    logger.info(
        "auto_mapping_complete",
        header_count=len(headers),
        mapped_count=len(mappings)
    )
    return mappings


def can_validate(mappings: Iterable[FieldMapping]) -> bool:
    """At least one of name/base_rate must be mapped before validating."""
    return any(m.target_field in ("name", "base_rate") for m in mappings)


class FieldMappingSet:
    """
    Active mappings, keyed by source column.

    Each edit replaces the internal tuple; callers holding
    a previous `mappings` snapshot never see it change.
    """

    def __init__(self, mappings: Iterable[FieldMapping] = ()):
        self._mappings: tuple[FieldMapping, ...] = ()
        for mapping in mappings:
            self.update_mapping(mapping.source_field, mapping.target_field, mapping.transform)

    @classmethod
    def from_headers(cls, headers: Iterable[str]) -> "FieldMappingSet":
        """Seed a set with auto_map() results."""
        return cls(auto_map(headers))

    @property
    def mappings(self) -> tuple[FieldMapping, ...]:
        return self._mappings

    def __len__(self) -> int:
        return len(self._mappings)

    def __iter__(self):
        return iter(self._mappings)

    def get(self, source_field: str) -> Optional[FieldMapping]:
        return next((m for m in self._mappings if m.source_field == source_field), None)

    def update_mapping(
        self,
        source_field: str,
        target_field: str,
        transform: Optional[Union[TransformKind, str]] = None
    ) -> FieldMapping:
        """
        Upsert the mapping for a source column.

        A replaced mapping keeps its position.

        Raises:
            InvalidTargetFieldError: target_field is not an article field
        """
        if target_field not in TARGET_FIELD_NAMES:
            raise InvalidTargetFieldError(target_field, list(TARGET_FIELD_NAMES))

        mapping = FieldMapping(
            source_field=source_field,
            target_field=target_field,
            transform=transform or TransformKind.NONE,
        )

        updated = list(self._mappings)
        for position, existing in enumerate(updated):
            if existing.source_field == source_field:
                updated[position] = mapping
                break
        else:
            updated.append(mapping)

        self._mappings = tuple(updated)
        logger.debug(
            "mapping_updated",
            source_field=source_field,
            target_field=target_field,
            transform=mapping.transform.value
        )
        return mapping

    def remove_mapping(self, source_field: str) -> bool:
        """Delete a column's mapping. Returns False if it had none."""
        remaining = tuple(m for m in self._mappings if m.source_field != source_field)
        removed = len(remaining) != len(self._mappings)
        self._mappings = remaining
        if removed:
            logger.debug("mapping_removed", source_field=source_field)
        return removed

    def is_mapped(self, target_field: str) -> bool:
        """A target field is mapped iff some mapping points at it."""
        return any(m.target_field == target_field for m in self._mappings)

    def unmapped_required_fields(self) -> list[str]:
        return [name for name in REQUIRED_TARGET_FIELDS if not self.is_mapped(name)]

    def duplicate_targets(self) -> dict[str, list[str]]:
        """
        Target fields fed by more than one column.

        Returns:
            {target field: [source columns in mapping order]}; only the
            first non-empty value of each row is used
        """
        sources: dict[str, list[str]] = {}
        for mapping in self._mappings:
            sources.setdefault(mapping.target_field, []).append(mapping.source_field)
        return {target: cols for target, cols in sources.items() if len(cols) > 1}
