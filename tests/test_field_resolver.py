from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from fillengine.fields.models import (
    CertificationMapping,
    CustomMapping,
    EducationMapping,
    ExperienceMapping,
    FieldMapping,
    LanguageMapping,
    PersonalMapping,
    SkillMapping,
    TemplateField,
)
from fillengine.fields.resolver import format_period, resolve_mapping
from fillengine.profile.models import Profile


def _profile() -> Profile:
    return Profile.model_validate(
        {
            "fullName": "Jan Pieter de Vries",
            "location": "Utrecht, Nederland",
            "email": "jan@example.nl",
            "phone": "+31 6 1234 5678",
            "experience": [
                {
                    "title": "Lead Developer",
                    "company": "Acme BV",
                    "startDate": "2021",
                    "isCurrentRole": True,
                },
                {
                    "title": "Developer",
                    "company": "Initech",
                    "startDate": "2017",
                    "endDate": "2021",
                },
            ],
            "education": [
                {
                    "school": "Universiteit Utrecht",
                    "degree": "MSc",
                    "startYear": 2012,
                    "endYear": 2014,
                }
            ],
            "skills": ["Python", "SQL"],
            "languages": [{"language": "Nederlands", "proficiency": "Moedertaal"}],
            "certifications": ["AWS Solutions Architect"],
        }
    )


def test_personal_name_parts() -> None:
    profile = _profile()

    assert resolve_mapping(profile, PersonalMapping(field="firstName")) == "Jan"
    assert resolve_mapping(profile, PersonalMapping(field="lastName")) == "Pieter de Vries"
    assert resolve_mapping(profile, PersonalMapping(field="fullName")) == "Jan Pieter de Vries"


def test_city_is_first_location_part() -> None:
    profile = _profile()

    assert resolve_mapping(profile, PersonalMapping(field="city")) == "Utrecht"
    assert resolve_mapping(profile, PersonalMapping(field="location")) == "Utrecht, Nederland"


def test_birth_date_and_nationality_come_from_custom_values() -> None:
    profile = _profile()
    custom = {"birthDate": "01-02-1990", "nationality": "Nederlandse"}

    assert resolve_mapping(profile, PersonalMapping(field="birthDate"), custom) == "01-02-1990"
    assert resolve_mapping(profile, PersonalMapping(field="nationality"), custom) == "Nederlandse"
    assert resolve_mapping(profile, PersonalMapping(field="birthDate")) == ""


def test_headline_falls_back_to_first_experience_title() -> None:
    profile = _profile()

    assert resolve_mapping(profile, PersonalMapping(field="headline")) == "Lead Developer"


def test_experience_period_uses_present_label_per_language() -> None:
    profile = _profile()
    mapping = ExperienceMapping(index=0, field="period")

    assert resolve_mapping(profile, mapping) == "2021 - Heden"
    assert resolve_mapping(profile, mapping, language="en") == "2021 - Present"
    assert resolve_mapping(profile, ExperienceMapping(index=1, field="period")) == "2017 - 2021"


def test_education_years_accept_integers() -> None:
    profile = _profile()

    assert resolve_mapping(profile, EducationMapping(index=0, field="period")) == "2012 - 2014"
    assert resolve_mapping(profile, EducationMapping(index=0, field="school")) == (
        "Universiteit Utrecht"
    )


@pytest.mark.parametrize(
    "mapping",
    [
        ExperienceMapping(index=7, field="company"),
        EducationMapping(index=3, field="degree"),
        SkillMapping(index=99),
        LanguageMapping(index=4, field="language"),
        CertificationMapping(index=2),
    ],
)
def test_out_of_range_index_resolves_to_empty_string(mapping: FieldMapping) -> None:
    assert resolve_mapping(_profile(), mapping) == ""


def test_empty_profile_never_raises() -> None:
    profile = Profile()

    assert resolve_mapping(profile, PersonalMapping(field="firstName")) == ""
    assert resolve_mapping(profile, PersonalMapping(field="lastName")) == ""
    assert resolve_mapping(profile, PersonalMapping(field="headline")) == ""
    assert resolve_mapping(profile, ExperienceMapping(index=0, field="title")) == ""


def test_skill_language_certification_and_custom() -> None:
    profile = _profile()

    assert resolve_mapping(profile, SkillMapping(index=1)) == "SQL"
    assert resolve_mapping(profile, LanguageMapping(index=0, field="proficiency")) == "Moedertaal"
    assert resolve_mapping(profile, CertificationMapping(index=0)) == "AWS Solutions Architect"
    assert resolve_mapping(profile, CustomMapping(literal_value="Ja")) == "Ja"


def test_unknown_mapping_variant_is_rejected() -> None:
    with pytest.raises(TypeError):
        resolve_mapping(_profile(), object())  # type: ignore[arg-type]


def test_field_mapping_union_is_closed() -> None:
    adapter = TypeAdapter(FieldMapping)

    parsed = adapter.validate_python({"type": "custom", "literalValue": "x"})
    assert isinstance(parsed, CustomMapping)

    with pytest.raises(ValidationError):
        adapter.validate_python({"type": "hobby", "index": 0})
    with pytest.raises(ValidationError):
        adapter.validate_python({"type": "experience", "index": -1, "field": "title"})


def test_template_field_accepts_camel_case_payload() -> None:
    field = TemplateField.model_validate(
        {
            "name": "summary",
            "page": 0,
            "x": 50,
            "y": 700,
            "width": 120,
            "fontSize": 10,
            "fontColor": "#333333",
            "isMultiLine": True,
            "maxLines": 2,
            "mapping": {"type": "personal", "field": "headline"},
        }
    )

    assert field.font_size == 10
    assert field.is_multi_line is True
    assert isinstance(field.mapping, PersonalMapping)


def test_format_period_without_start() -> None:
    assert format_period(None, "2020", current=False, present="Heden") == "2020"
    assert format_period("2019", None, current=False, present="Present") == "2019 - Present"
