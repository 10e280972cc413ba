"""Blueprint and fill-response models exchanged with the analysis service."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SectionType = Literal[
    "personal_info",
    "work_experience",
    "education",
    "skills",
    "languages",
    "references",
    "hobbies",
    "special_notes",
    "profile_summary",
    "other",
]
RepeatingSectionType = Literal["work_experience", "education", "languages", "skills"]
BlockType = Literal["table_rows", "paragraph_group"]
DescriptionFormat = Literal["bullets", "paragraph"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class BlueprintSection(_CamelModel):
    type: SectionType
    label: str = ""
    segment_ids: list[str] = Field(default_factory=list)


class BlockInstance(_CamelModel):
    segment_ids: list[str] = Field(default_factory=list)


class RepeatingBlock(_CamelModel):
    section_type: RepeatingSectionType
    block_type: BlockType
    instances: list[BlockInstance] = Field(default_factory=list)


class TemplateBlueprint(_CamelModel):
    """Semantic sections and repeating blocks of a flow-layout template."""

    sections: list[BlueprintSection] = Field(default_factory=list)
    repeating_blocks: list[RepeatingBlock] = Field(default_factory=list)

    def section_of(self, segment_id: str) -> BlueprintSection | None:
        for section in self.sections:
            if segment_id in section.segment_ids:
                return section
        return None


class SegmentFill(_CamelModel):
    segment_id: str
    value: str


class ContentFillResponse(_CamelModel):
    fills: list[SegmentFill] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
