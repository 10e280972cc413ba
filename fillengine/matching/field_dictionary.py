"""Canonical Dutch/English form-field dictionary.

Built once at import time and exposed read-only. Indexed keys cover the
first ten experience and education entries with the suffixes "N", "_N",
" N" (N counts from 1) and "[i]" (i counts from 0).
"""

from __future__ import annotations

from types import MappingProxyType

from fillengine.fields.models import (
    EducationField,
    EducationMapping,
    ExperienceField,
    ExperienceMapping,
    FieldMapping,
    PersonalMapping,
)

MAX_INDEXED_ENTRIES = 10

_PERSONAL_KEYS: tuple[tuple[tuple[str, ...], FieldMapping], ...] = (
    (
        ("naam", "name", "fullname", "full_name", "volledige naam"),
        PersonalMapping(field="fullName"),
    ),
    (("voornaam", "firstname", "first_name", "first name"), PersonalMapping(field="firstName")),
    (
        ("achternaam", "lastname", "last_name", "last name", "surname"),
        PersonalMapping(field="lastName"),
    ),
    (("email", "e-mail", "emailadres"), PersonalMapping(field="email")),
    (
        ("telefoon", "phone", "telefoonnummer", "tel", "mobile", "mobiel"),
        PersonalMapping(field="phone"),
    ),
    (("woonplaats", "city", "stad", "plaats"), PersonalMapping(field="city")),
    (("location", "locatie"), PersonalMapping(field="location")),
    (
        ("geboortedatum", "birthdate", "birth_date", "date of birth", "dob"),
        PersonalMapping(field="birthDate"),
    ),
    (("nationaliteit", "nationality"), PersonalMapping(field="nationality")),
    (("functie", "function"), PersonalMapping(field="headline")),
    (("jobtitle", "job_title"), ExperienceMapping(index=0, field="title")),
    (("title", "headline"), PersonalMapping(field="headline")),
    (("linkedin", "linkedin url", "linkedinurl"), PersonalMapping(field="linkedinUrl")),
)

_EXPERIENCE_KEYS: tuple[tuple[tuple[str, ...], ExperienceField], ...] = (
    (("werkgever", "bedrijf", "company", "employer"), "company"),
    (("functie", "function", "jobtitle", "job_title"), "title"),
    (("periode", "period"), "period"),
    (("werkzaamheden", "description", "taken", "tasks"), "description"),
)

_EDUCATION_KEYS: tuple[tuple[tuple[str, ...], EducationField], ...] = (
    (("opleiding", "education", "degree"), "degree"),
    (("school", "institution", "instelling"), "school"),
    (("studierichting", "field"), "fieldOfStudy"),
    (("jaar", "year"), "period"),
)


def indexed_suffixes(index: int) -> tuple[str, ...]:
    number = index + 1
    return (str(number), f"_{number}", f" {number}", f"[{index}]")


def _build() -> dict[str, FieldMapping]:
    entries: dict[str, FieldMapping] = {}

    for keys, mapping in _PERSONAL_KEYS:
        for key in keys:
            entries.setdefault(key, mapping)

    for index in range(MAX_INDEXED_ENTRIES):
        for bases, experience_field in _EXPERIENCE_KEYS:
            for base in bases:
                for suffix in indexed_suffixes(index):
                    entries.setdefault(
                        f"{base}{suffix}",
                        ExperienceMapping(index=index, field=experience_field),
                    )
        for bases, education_field in _EDUCATION_KEYS:
            for base in bases:
                for suffix in indexed_suffixes(index):
                    entries.setdefault(
                        f"{base}{suffix}",
                        EducationMapping(index=index, field=education_field),
                    )

    return entries


FIELD_DICTIONARY: MappingProxyType[str, FieldMapping] = MappingProxyType(_build())
