"""Field mapping, template field and fill report models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt
from pydantic.alias_generators import to_camel

PersonalField = Literal[
    "firstName",
    "lastName",
    "fullName",
    "birthDate",
    "nationality",
    "city",
    "email",
    "phone",
    "headline",
    "location",
    "linkedinUrl",
]
ExperienceField = Literal["company", "title", "period", "description", "location"]
EducationField = Literal["school", "degree", "fieldOfStudy", "period"]
LanguageField = Literal["language", "proficiency"]
FormFieldType = Literal["text", "checkbox", "dropdown", "other"]
FillMethod = Literal["form", "coordinates", "structural", "none"]


class _MappingModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class PersonalMapping(_MappingModel):
    type: Literal["personal"] = "personal"
    field: PersonalField


class ExperienceMapping(_MappingModel):
    type: Literal["experience"] = "experience"
    index: NonNegativeInt
    field: ExperienceField


class EducationMapping(_MappingModel):
    type: Literal["education"] = "education"
    index: NonNegativeInt
    field: EducationField


class SkillMapping(_MappingModel):
    type: Literal["skill"] = "skill"
    index: NonNegativeInt


class LanguageMapping(_MappingModel):
    type: Literal["language"] = "language"
    index: NonNegativeInt
    field: LanguageField


class CertificationMapping(_MappingModel):
    type: Literal["certification"] = "certification"
    index: NonNegativeInt


class CustomMapping(_MappingModel):
    type: Literal["custom"] = "custom"
    literal_value: str = Field(alias="literalValue")

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


FieldMapping = Annotated[
    PersonalMapping
    | ExperienceMapping
    | EducationMapping
    | SkillMapping
    | LanguageMapping
    | CertificationMapping
    | CustomMapping,
    Field(discriminator="type"),
]


class TemplateField(BaseModel):
    """A configured text box on a fixed-layout page.

    Coordinates are in points with y measured from the bottom of the page.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )

    name: str
    page: NonNegativeInt = 0
    x: float
    y: float
    width: float | None = Field(default=None, gt=0)
    # None draws at the engine default font size
    font_size: float | None = Field(default=None, gt=0)
    font_color: str | None = Field(default=None, pattern=r"^#?[0-9a-fA-F]{6}$")
    is_multi_line: bool = False
    max_lines: int | None = Field(default=None, gt=0)
    mapping: FieldMapping


@dataclass(frozen=True)
class DetectedFormField:
    """A native interactive field discovered inside a template."""

    name: str
    type: FormFieldType
    value: str | None = None
    page: int | None = None


class FillReport(BaseModel):
    """Outcome of one fill: which strategy ran and what it wrote."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    method: FillMethod
    filled_field_names: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
