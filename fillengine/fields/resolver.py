"""Resolve a FieldMapping against a profile into display text."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TypeVar

from fillengine.fields.models import (
    CertificationMapping,
    CustomMapping,
    EducationMapping,
    ExperienceMapping,
    FieldMapping,
    LanguageMapping,
    PersonalMapping,
    SkillMapping,
)
from fillengine.profile.models import EducationEntry, ExperienceEntry, Profile

PRESENT_LABELS = {"nl": "Heden", "en": "Present"}

_T = TypeVar("_T")


def resolve_mapping(
    profile: Profile,
    mapping: FieldMapping,
    custom_values: Mapping[str, str] | None = None,
    *,
    language: str = "nl",
) -> str:
    """Return the text a mapping points at, or "" when the source is absent.

    Out-of-range indexes and missing profile values never raise.
    """

    custom = custom_values or {}
    present = PRESENT_LABELS.get(language, PRESENT_LABELS["nl"])

    if isinstance(mapping, PersonalMapping):
        return _resolve_personal(profile, mapping.field, custom)
    if isinstance(mapping, ExperienceMapping):
        entry = _entry_at(profile.experience, mapping.index)
        if entry is None:
            return ""
        return _resolve_experience(entry, mapping.field, present)
    if isinstance(mapping, EducationMapping):
        entry = _entry_at(profile.education, mapping.index)
        if entry is None:
            return ""
        return _resolve_education(entry, mapping.field)
    if isinstance(mapping, SkillMapping):
        skill = _entry_at(profile.skills, mapping.index)
        return skill.name if skill is not None else ""
    if isinstance(mapping, LanguageMapping):
        language_entry = _entry_at(profile.languages, mapping.index)
        if language_entry is None:
            return ""
        if mapping.field == "language":
            return language_entry.language
        return language_entry.proficiency or ""
    if isinstance(mapping, CertificationMapping):
        certification = _entry_at(profile.certifications, mapping.index)
        return certification.name if certification is not None else ""
    if isinstance(mapping, CustomMapping):
        return mapping.literal_value

    raise TypeError(f"Unsupported field mapping: {type(mapping).__name__}")


def format_period(start: str | None, end: str | None, *, current: bool, present: str) -> str:
    """Format a date range as "start - end"."""

    start_text = (start or "").strip()
    end_text = (end or "").strip()
    if start_text:
        if current or not end_text:
            return f"{start_text} - {present}"
        return f"{start_text} - {end_text}"
    return end_text


def _resolve_personal(profile: Profile, field: str, custom: Mapping[str, str]) -> str:
    name_parts = profile.full_name.split()

    if field == "firstName":
        return name_parts[0] if name_parts else ""
    if field == "lastName":
        return " ".join(name_parts[1:])
    if field == "fullName":
        return profile.full_name.strip()
    if field in ("birthDate", "nationality"):
        return custom.get(field, "")
    if field == "city":
        return (profile.location or "").split(",")[0].strip()
    if field == "location":
        return (profile.location or "").strip()
    if field == "email":
        return profile.email or ""
    if field == "phone":
        return profile.phone or ""
    if field == "headline":
        if profile.headline:
            return profile.headline
        first = _entry_at(profile.experience, 0)
        return (first.title or "") if first is not None else ""
    if field == "linkedinUrl":
        return profile.linkedin_url or ""

    raise ValueError(f"Unsupported personal field: {field}")


def _resolve_experience(entry: ExperienceEntry, field: str, present: str) -> str:
    if field == "company":
        return entry.company or ""
    if field == "title":
        return entry.title or ""
    if field == "period":
        return format_period(
            entry.start_date,
            entry.end_date,
            current=entry.is_current_role,
            present=present,
        )
    if field == "description":
        return entry.description or ""
    if field == "location":
        return entry.location or ""

    raise ValueError(f"Unsupported experience field: {field}")


def _resolve_education(entry: EducationEntry, field: str) -> str:
    if field == "school":
        return entry.school or ""
    if field == "degree":
        return entry.degree or ""
    if field == "fieldOfStudy":
        return entry.field_of_study or ""
    if field == "period":
        start = (entry.start_year or "").strip()
        end = (entry.end_year or "").strip()
        if start and end:
            return f"{start} - {end}"
        return start or end

    raise ValueError(f"Unsupported education field: {field}")


def _entry_at(entries: Sequence[_T], index: int) -> _T | None:
    if 0 <= index < len(entries):
        return entries[index]
    return None
