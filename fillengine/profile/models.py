"""Profile and vacancy input models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _ProfileModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class ExperienceEntry(_ProfileModel):
    title: str | None = None
    company: str | None = None
    location: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    description: str | None = None
    is_current_role: bool = False


class EducationEntry(_ProfileModel):
    school: str | None = None
    degree: str | None = None
    field_of_study: str | None = None
    start_year: str | None = None
    end_year: str | None = None

    @field_validator("start_year", "end_year", mode="before")
    @classmethod
    def _year_to_text(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class SkillEntry(_ProfileModel):
    name: str


class LanguageEntry(_ProfileModel):
    language: str
    proficiency: str | None = None


class CertificationEntry(_ProfileModel):
    name: str
    issuer: str | None = None
    issue_date: str | None = None


class Profile(_ProfileModel):
    """Structured person data used as the source of every filled value.

    List order is meaningful: field mappings address entries by index.
    """

    full_name: str = ""
    headline: str | None = None
    location: str | None = None
    about: str | None = None
    email: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None
    experience: list[ExperienceEntry] = Field(default_factory=list)
    education: list[EducationEntry] = Field(default_factory=list)
    skills: list[SkillEntry] = Field(default_factory=list)
    languages: list[LanguageEntry] = Field(default_factory=list)
    certifications: list[CertificationEntry] = Field(default_factory=list)

    @field_validator("skills", "certifications", mode="before")
    @classmethod
    def _accept_plain_names(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        return [{"name": item} if isinstance(item, str) else item for item in value]


class JobVacancy(_ProfileModel):
    title: str = ""
    company: str | None = None
    description: str | None = None
    requirements: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)


class ProfileCounts(BaseModel):
    """Entry counts the structural analysis is told about."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    work_experience: int = 0
    education: int = 0

    @classmethod
    def from_profile(cls, profile: Profile) -> ProfileCounts:
        return cls(work_experience=len(profile.experience), education=len(profile.education))
