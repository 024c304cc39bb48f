"""
Form state models.

These models hold the scalar answers of a roofing-condition survey as the
inspector fills the form section by section.

Thread Safety:
    - FormState is mutable and owned by one form session
    - Use FormState.freeze() to create an immutable snapshot for submission
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from core.exceptions import InvalidFieldError


DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"

CONDITION_CHOICES = ("Good", "Fair", "Poor", "Failed", "N/A")
YES_NO_CHOICES = ("Yes", "No", "N/A")


@dataclass(frozen=True)
class FieldDefinition:
    """A single declared form field."""

    name: str
    """Field key, also the record store column name."""

    label: str
    """Human-readable label."""

    kind: str = "text"
    """One of 'text', 'number', 'choice', 'date', 'time'."""

    choices: Tuple[str, ...] = ()
    """Allowed values for 'choice' fields."""

    def to_dict(self) -> Dict[str, object]:
        data = {"name": self.name, "label": self.label, "kind": self.kind}
        if self.choices:
            data["choices"] = list(self.choices)
        return data


def _text(name: str, label: str) -> FieldDefinition:
    return FieldDefinition(name, label)


def _number(name: str, label: str) -> FieldDefinition:
    return FieldDefinition(name, label, "number")


def _choice(name: str, label: str, choices: Tuple[str, ...]) -> FieldDefinition:
    return FieldDefinition(name, label, "choice", choices)


def _condition(name: str, label: str) -> FieldDefinition:
    return _choice(name, label, CONDITION_CHOICES)


def _yes_no(name: str, label: str) -> FieldDefinition:
    return _choice(name, label, YES_NO_CHOICES)


# Sections in display order. Field names are record store column names.
FORM_SECTIONS: Tuple[Tuple[str, Tuple[FieldDefinition, ...]], ...] = (
    ("Job Details", (
        FieldDefinition("inspectionDate", "Inspection date", "date"),
        FieldDefinition("inspectionTime", "Inspection time", "time"),
        _text("inspectorName", "Inspector"),
        _text("clientName", "Client name"),
        _text("clientPhone", "Client phone"),
        _text("clientEmail", "Client email"),
        _text("propertyAddress", "Property address"),
        _text("suburb", "Suburb"),
        _text("postcode", "Postcode"),
        _text("jobReference", "Job reference"),
        _choice("weatherConditions", "Weather", ("Fine", "Overcast", "Light Rain", "Heavy Rain", "Windy")),
        _choice("roofAccess", "Roof access", ("Ladder", "Scaffold", "EWP", "Drone", "Not Accessible")),
    )),
    ("Roof Overview", (
        _choice("claddingType", "Cladding type", (
            "Metal", "Concrete Tile", "Terracotta Tile", "Slate", "Asphalt Shingle", "Other",
        )),
        _choice("roofShape", "Roof shape", ("Gable", "Hip", "Dutch Gable", "Skillion", "Flat", "Combination")),
        _number("roofPitch", "Roof pitch (degrees)"),
        _number("roofAgeYears", "Approximate roof age (years)"),
        _number("storeys", "Storeys"),
        _number("roofAreaSqm", "Roof area (m2)"),
        _text("roofColour", "Roof colour"),
    )),
    ("Cladding", (
        _condition("claddingCondition", "Cladding condition"),
        _yes_no("brokenTiles", "Broken tiles"),
        _number("brokenTilesCount", "Broken tile count"),
        _yes_no("crackedTiles", "Cracked tiles"),
        _yes_no("slippedTiles", "Slipped tiles"),
        _yes_no("rustPresent", "Rust present"),
        _choice("rustSeverity", "Rust severity", ("None", "Surface", "Moderate", "Severe")),
        _condition("fixingsCondition", "Fixings condition"),
        _yes_no("lichenMoss", "Lichen or moss"),
        _text("claddingNotes", "Cladding notes"),
    )),
    ("Ridge & Hips", (
        _condition("ridgeCappingCondition", "Ridge capping condition"),
        _condition("beddingCondition", "Bedding condition"),
        _condition("pointingCondition", "Pointing condition"),
        _text("ridgeNotes", "Ridge notes"),
    )),
    ("Valleys", (
        _choice("valleyMaterial", "Valley material", ("Galvanised", "Colorbond", "Zincalume", "Lead", "Other")),
        _condition("valleyCondition", "Valley condition"),
        _yes_no("valleyDebris", "Debris in valleys"),
        _text("valleyNotes", "Valley notes"),
    )),
    ("Flashings", (
        _choice("flashingType", "Flashing type", ("Lead", "Metal", "Mortar", "Other")),
        _condition("flashingCondition", "Flashing condition"),
        _text("flashingNotes", "Flashing notes"),
    )),
    ("Gutters & Downpipes", (
        _choice("gutterMaterial", "Gutter material", ("Colorbond", "Zincalume", "PVC", "Copper", "Other")),
        _condition("gutterCondition", "Gutter condition"),
        _condition("downpipeCondition", "Downpipe condition"),
        _yes_no("gutterGuardFitted", "Gutter guard fitted"),
        _yes_no("gutterBlockage", "Gutter blockage"),
        _text("gutterNotes", "Gutter notes"),
    )),
    ("Penetrations", (
        _number("skylightCount", "Skylights"),
        _number("ventCount", "Vents"),
        _yes_no("solarPanels", "Solar panels"),
        _condition("penetrationCondition", "Penetration sealing condition"),
        _text("penetrationNotes", "Penetration notes"),
    )),
    ("Roof Space", (
        _yes_no("roofSpaceAccessible", "Roof space accessible"),
        _yes_no("sarkingPresent", "Sarking present"),
        _condition("insulationCondition", "Insulation condition"),
        _yes_no("leaksEvident", "Leaks evident"),
        _condition("timberCondition", "Timber condition"),
        _text("roofSpaceNotes", "Roof space notes"),
    )),
    ("Summary", (
        _condition("overallCondition", "Overall condition"),
        _choice("urgency", "Urgency", ("Immediate", "Within 3 Months", "Within 12 Months", "Monitor")),
        _text("recommendedAction", "Recommended action"),
        _number("remainingLifeYears", "Estimated remaining life (years)"),
        _number("estimatedCost", "Estimated repair cost"),
        _text("additionalComments", "Additional comments"),
    )),
)

FIELDS: Dict[str, FieldDefinition] = {
    definition.name: definition
    for _, definitions in FORM_SECTIONS
    for definition in definitions
}

FIELD_NAMES: Tuple[str, ...] = tuple(FIELDS)

DATE_FIELD = "inspectionDate"
TIME_FIELD = "inspectionTime"


def normalize_value(key: str, value: object) -> str:
    """
    Validate a raw value for a declared field and return its stored form.

    Empty string means "unset" for every kind.

    Raises:
        InvalidFieldError: If key is not declared or value is not accepted
    """
    definition = FIELDS.get(key)
    if definition is None:
        raise InvalidFieldError(key, f"Unknown field: {key}")

    text = "" if value is None else str(value).strip()
    if not text:
        return ""

    if definition.kind == "choice" and text not in definition.choices:
        raise InvalidFieldError(key, f"{definition.label} must be one of: {', '.join(definition.choices)}")

    if definition.kind == "number":
        try:
            number = float(text)
        except ValueError:
            raise InvalidFieldError(key, f"{definition.label} must be a number")
        # float() also takes "nan", "inf" and digit separators like "1_000"
        if "_" in text or not math.isfinite(number):
            raise InvalidFieldError(key, f"{definition.label} must be a number")

    if definition.kind in ("date", "time"):
        fmt = DATE_FORMAT if definition.kind == "date" else TIME_FORMAT
        try:
            datetime.strptime(text, fmt)
        except ValueError:
            raise InvalidFieldError(key, f"{definition.label} must match {fmt}")

    return text


@dataclass
class FormState:
    """
    Current answers of one inspection form.

    Lifecycle:
        1. Created fresh (today's date and time, everything else empty)
        2. Mutated field by field on user input
        3. Frozen for the submission attempt
        4. Replaced by a fresh state after a successful submission

    Invariant: keys are exactly FIELD_NAMES.
    """

    values: Dict[str, str] = field(default_factory=lambda: dict.fromkeys(FIELD_NAMES, ""))

    @classmethod
    def fresh(cls, now: Optional[datetime] = None) -> "FormState":
        """Create a baseline state stamped with now."""
        now = now or datetime.now()
        state = cls()
        state.values[DATE_FIELD] = now.strftime(DATE_FORMAT)
        state.values[TIME_FIELD] = now.strftime(TIME_FORMAT)
        return state

    def set_field(self, key: str, value: object) -> str:
        """
        Set one field. Pure state mutation, no I/O.

        Returns:
            The stored (normalized) value

        Raises:
            InvalidFieldError: If key is unknown or value is invalid
        """
        stored = normalize_value(key, value)
        self.values[key] = stored
        return stored

    def get(self, key: str) -> str:
        if key not in FIELDS:
            raise InvalidFieldError(key, f"Unknown field: {key}")
        return self.values[key]

    def to_dict(self) -> Dict[str, str]:
        return dict(self.values)

    def freeze(self) -> "FrozenFormState":
        """
        Create an immutable snapshot of the current values.

        Use this when handing form data to the submission thread.
        """
        return FrozenFormState(values=MappingProxyType(dict(self.values)))


@dataclass(frozen=True)
class FrozenFormState:
    """Immutable snapshot of a FormState for one submission attempt."""

    values: Mapping[str, str]

    def to_dict(self) -> Dict[str, str]:
        return dict(self.values)
