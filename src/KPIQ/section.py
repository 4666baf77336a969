"""
Section and status vocabulary.

Defines the fixed hospital sections, KPI measurement kinds and record
lifecycle states used across the dashboard.
"""

from enum import Enum


def _normalize_label(label: str) -> str:
    return " ".join(str(label).strip().lower().replace("_", " ").split())


class SectionName(Enum):
    """
    Enumeration of the hospital sections that submit monthly KPIs.
    Values are the display labels used on forms and reports.
    """
    ADMITTING = "Admitting Section"
    CARDIO = "Cardiovascular Diagnostics"
    CASHIER = "Cashier Management"
    CLAIMS = "Claims"
    ER = "Emergency Room Complex"
    DIETARY = "Food and Nutrition Management"
    GENERAL_SERVICES = "General Services Section"
    RECORDS = "Health Records and Documents Management"
    HOUSEKEEPING = "Housekeeping Laundry and Linen"
    INDUSTRIAL = "Industrial Clinic"
    IT = "Information Technology"
    LAB = "Laboratory"
    SOCIAL = "Medical Social Service"
    NURSING = "Nursing Division"
    PATHOLOGY = "Pathology"
    PHARMACY = "Pharmacy"
    PT_OT = "Physical and Occupational Therapy"
    RADIOLOGY = "Radiology"
    REQUISITION = "Requisition Section"
    SUPPLY = "Supply Management Section"
    SURGICAL = "Surgical Care Complex"

    @classmethod
    def from_label(cls, label: str) -> "SectionName":
        """
        Resolve either a member name ("ER") or a display label
        ("Emergency Room Complex"), ignoring case and extra whitespace.
        """
        if isinstance(label, cls):
            return label
        key = _normalize_label(label)
        for member in cls:
            if key in (_normalize_label(member.name), _normalize_label(member.value)):
                return member
        raise ValueError(f"Unknown section label: {label!r}")


class KPIType(Enum):
    """How a KPI is measured."""
    PERCENTAGE = "PERCENTAGE"
    TIME = "TIME"

    @classmethod
    def from_label(cls, label: str) -> "KPIType":
        if isinstance(label, cls):
            return label
        key = str(label).strip().upper()
        mapping = {
            "PERCENTAGE": cls.PERCENTAGE,
            "PERCENT": cls.PERCENTAGE,
            "PCT": cls.PERCENTAGE,
            "%": cls.PERCENTAGE,
            "TIME": cls.TIME,
        }
        try:
            return mapping[key]
        except KeyError:
            raise ValueError(f"Unknown KPI type label: {label!r}")


class RecordStatus(Enum):
    """
    Lifecycle of a submitted record. Drafts are promoted to approved in
    bulk and never move back.
    """
    DRAFT = "DRAFT"
    APPROVED = "APPROVED"

    @classmethod
    def from_label(cls, label: str | None) -> "RecordStatus":
        """
        Blank labels map to APPROVED: rows stored without a status
        predate the approval workflow and are treated as official.
        """
        if isinstance(label, cls):
            return label
        key = "" if label is None else str(label).strip().upper()
        if not key:
            return cls.APPROVED
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown record status: {label!r}")
