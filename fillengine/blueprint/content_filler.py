"""Generate segment fills for a blueprint and validate them on the caller side.

The service writes the text, but which profile entry lands in which block
instance is decided here, before the call, and checked again afterwards:
no entry may appear in two instances, and values never cross into a
section of a different kind.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from fillengine.blueprint import prompts
from fillengine.blueprint.models import (
    ContentFillResponse,
    DescriptionFormat,
    RepeatingBlock,
    TemplateBlueprint,
)
from fillengine.blueprint.structure import StructuralMap
from fillengine.llm.service import AnalysisService
from fillengine.profile.models import JobVacancy, Profile

logger = logging.getLogger(__name__)

FILL_TEMPERATURE = 0.5

_YEAR_RE = re.compile(r"(\d{4})")
_LABEL_ONLY_RE = re.compile(r"^(.+?)\s*:\s*$")
_LEADING_COLON_RE = re.compile(r"^\s*:\s*")
_WORK_PATTERNS = (
    re.compile(r"\d{4}\s*[-–—]\s*(\d{4}|[Hh]eden|[Pp]resent)"),
    re.compile(r"@"),
    re.compile(
        r"\b(Founder|Co-?founder|CEO|CTO|Manager|Director|Lead|Developer|Engineer|Consultant)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(Technical|Senior|Junior|Head of|VP|Vice President)\b", re.IGNORECASE),
    re.compile(r"\b(BV|B\.V\.|NV|N\.V\.|Inc|LLC|Ltd|GmbH)\b", re.IGNORECASE),
)
# Section types whose content must come from their own profile category.
_GUARDED_SECTIONS = frozenset(
    {"work_experience", "education", "skills", "languages", "personal_info", "special_notes"}
)


@dataclass(frozen=True)
class InstanceAssignment:
    section_type: str
    instance_index: int
    segment_ids: tuple[str, ...]
    entry_index: int | None


@dataclass
class BlueprintFill:
    fills: dict[str, str] = field(default_factory=dict)
    assignments: dict[tuple[str, int], int] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def experience_order(profile: Profile) -> list[int]:
    """Indexes of experience entries, current roles first, then newest start year."""

    def key(index: int) -> tuple[bool, int]:
        entry = profile.experience[index]
        year = _first_year(entry.start_date) or _first_year(entry.end_date)
        return (not entry.is_current_role, -year if year else 1)

    return sorted(range(len(profile.experience)), key=key)


def education_order(profile: Profile) -> list[int]:
    def key(index: int) -> int:
        entry = profile.education[index]
        year = _first_year(entry.end_year) or _first_year(entry.start_year)
        return -year if year else 1

    return sorted(range(len(profile.education)), key=key)


def plan_assignments(blueprint: TemplateBlueprint, profile: Profile) -> list[InstanceAssignment]:
    """Give instance k of each repeating block the k-th entry in recency order.

    With fewer instances than entries only the most recent entries are used.
    """

    plan: list[InstanceAssignment] = []
    for block in blueprint.repeating_blocks:
        order = _entry_order(block, profile)
        for instance_index, instance in enumerate(block.instances):
            entry_index = order[instance_index] if instance_index < len(order) else None
            plan.append(
                InstanceAssignment(
                    section_type=block.section_type,
                    instance_index=instance_index,
                    segment_ids=tuple(instance.segment_ids),
                    entry_index=entry_index,
                )
            )
    return plan


async def fill_blueprint(
    service: AnalysisService,
    blueprint: TemplateBlueprint,
    structural_map: StructuralMap,
    profile: Profile,
    *,
    job: JobVacancy | None = None,
    description_format: DescriptionFormat = "bullets",
    custom_instructions: str | None = None,
    language: str = "nl",
    custom_values: Mapping[str, str] | None = None,
    temperature: float = FILL_TEMPERATURE,
) -> BlueprintFill:
    """Ask the service for segment values and return the validated fills."""

    plan = plan_assignments(blueprint, profile)
    prompt = prompts.fill_user_prompt(
        template_map=structural_map.text,
        blueprint_json=json.dumps(
            blueprint.model_dump(mode="json", by_alias=True),
            ensure_ascii=False,
            separators=(",", ":"),
        ),
        assignment_plan=[_describe_assignment(item, profile, language) for item in plan],
        profile_text=prompts.profile_summary(profile, language, custom_values),
        job_text=prompts.job_summary(job, language) if job is not None else None,
        format_text=prompts.format_instruction(language, description_format),
        custom_instructions=custom_instructions,
    )

    response = await service.generate(
        system_prompt=prompts.fill_system_prompt(language),
        content=prompt,
        schema=ContentFillResponse,
        temperature=temperature,
    )

    raw = {item.segment_id: item.value for item in response.fills}
    result = validate_fills(raw, blueprint, structural_map, profile, plan)
    result.warnings[:0] = list(response.warnings)
    return result


def validate_fills(
    raw_fills: Mapping[str, str],
    blueprint: TemplateBlueprint,
    structural_map: StructuralMap,
    profile: Profile,
    plan: Sequence[InstanceAssignment],
) -> BlueprintFill:
    """Apply every caller-side rule to raw service fills."""

    result = BlueprintFill()
    known = structural_map.segment_ids()
    headers = header_segment_ids(blueprint, structural_map)
    sources = _value_sources(profile)
    tab_followers = {
        segment_id for group in structural_map.tab_groups for segment_id in group[1:]
    }

    for segment_id, value in raw_fills.items():
        if segment_id not in known:
            result.warnings.append(f"dropped fill for unknown segment {segment_id}")
            continue
        if segment_id in headers:
            result.warnings.append(f"kept section header {segment_id} unchanged")
            continue

        segment = structural_map.segment(segment_id)
        original = segment.text if segment is not None else ""
        cleaned = _strip_label_echo(original, value)
        if segment_id in tab_followers and not original.lstrip().startswith(":"):
            cleaned = _LEADING_COLON_RE.sub("", cleaned)

        section = blueprint.section_of(segment_id)
        section_type = section.type if section is not None else "other"
        if not _respects_section(section_type, cleaned, sources):
            result.warnings.append(
                f"dropped {segment_id}: value belongs to a different section than {section_type}"
            )
            continue
        if section_type == "special_notes" and _looks_like_work(cleaned):
            result.warnings.append(f"dropped {segment_id}: work content in special notes")
            continue

        result.fills[segment_id] = cleaned

    _enforce_distinct_instances(result, plan, profile)

    for warning in result.warnings:
        logger.debug("fill validation: %s", warning)
    return result


def header_segment_ids(blueprint: TemplateBlueprint, structural_map: StructuralMap) -> set[str]:
    """Segments whose text is their section's header label."""

    headers: set[str] = set()
    for section in blueprint.sections:
        label = _normalize(section.label).rstrip(":").strip()
        if not label:
            continue
        for segment_id in section.segment_ids:
            segment = structural_map.segment(segment_id)
            if segment is None:
                continue
            if _normalize(segment.text).rstrip(":").strip() == label:
                headers.add(segment_id)
    return headers


def _enforce_distinct_instances(
    result: BlueprintFill,
    plan: Sequence[InstanceAssignment],
    profile: Profile,
) -> None:
    for item in plan:
        values = [result.fills[sid] for sid in item.segment_ids if sid in result.fills]
        if not values:
            continue

        keys = _entry_keys(item.section_type, profile)
        own = keys.get(item.entry_index, set()) if item.entry_index is not None else set()
        identified = {
            index
            for index, entry_keys in keys.items()
            if index != item.entry_index and _mentions(values, entry_keys - own)
        }
        if identified and not _mentions(values, own):
            for segment_id in item.segment_ids:
                result.fills.pop(segment_id, None)
            result.warnings.append(
                f"discarded {item.section_type} instance {item.instance_index + 1}: "
                f"content belongs to entry {min(identified) + 1}, "
                f"planned entry {'none' if item.entry_index is None else item.entry_index + 1}"
            )
            continue

        if item.entry_index is not None:
            result.assignments[(item.section_type, item.instance_index)] = item.entry_index


def _entry_order(block: RepeatingBlock, profile: Profile) -> list[int]:
    if block.section_type == "work_experience":
        return experience_order(profile)
    if block.section_type == "education":
        return education_order(profile)
    if block.section_type == "languages":
        return list(range(len(profile.languages)))
    return list(range(len(profile.skills)))


def _entry_keys(section_type: str, profile: Profile) -> dict[int, set[str]]:
    keys: dict[int, set[str]] = {}
    if section_type == "work_experience":
        for index, entry in enumerate(profile.experience):
            keys[index] = _normalized_set((entry.company, entry.title))
    elif section_type == "education":
        for index, entry in enumerate(profile.education):
            keys[index] = _normalized_set((entry.school, entry.degree))
    elif section_type == "languages":
        for index, language in enumerate(profile.languages):
            keys[index] = _normalized_set((language.language,))
    else:
        for index, skill in enumerate(profile.skills):
            keys[index] = _normalized_set((skill.name,))
    return keys


def _value_sources(profile: Profile) -> dict[str, set[str]]:
    """Map normalized profile values to the section types they may appear in."""

    sources: dict[str, set[str]] = {}

    def add(values: Iterable[str | None], section_type: str) -> None:
        for value in values:
            normalized = _normalize(value)
            if normalized:
                sources.setdefault(normalized, set()).add(section_type)

    for entry in profile.experience:
        add((entry.company, entry.title, entry.description), "work_experience")
    for entry in profile.education:
        add((entry.school, entry.degree, entry.field_of_study), "education")
    add((skill.name for skill in profile.skills), "skills")
    add((certification.name for certification in profile.certifications), "skills")
    add((language.language for language in profile.languages), "languages")
    return sources


def _respects_section(section_type: str, value: str, sources: Mapping[str, set[str]]) -> bool:
    if section_type not in _GUARDED_SECTIONS:
        return True
    owners = sources.get(_normalize(value))
    return owners is None or section_type in owners


def _looks_like_work(value: str) -> bool:
    return any(pattern.search(value) for pattern in _WORK_PATTERNS)


def _strip_label_echo(original: str, value: str) -> str:
    match = _LABEL_ONLY_RE.match(original.strip())
    if match is None:
        return value
    label = re.escape(match.group(1).strip())
    prefix = re.compile(rf"^{label}\s*:\s*", re.IGNORECASE)
    if prefix.match(value):
        return prefix.sub("", value).strip()
    return value


def _describe_assignment(item: InstanceAssignment, profile: Profile, language: str) -> str:
    header = (
        f"{item.section_type} instance {item.instance_index + 1} "
        f"(segments {', '.join(item.segment_ids)}):"
    )
    if item.entry_index is None:
        return f"{header}\n   (no entry: clear these segments)"

    if item.section_type == "work_experience":
        body = prompts.experience_block(
            profile.experience[item.entry_index], item.entry_index + 1, language
        )
    elif item.section_type == "education":
        body = prompts.education_block(
            profile.education[item.entry_index], item.entry_index + 1, language
        )
    elif item.section_type == "languages":
        entry = profile.languages[item.entry_index]
        body = f"{entry.language}" + (f" ({entry.proficiency})" if entry.proficiency else "")
    else:
        body = profile.skills[item.entry_index].name
    return f"{header}\n{body}"


def _mentions(values: Sequence[str], keys: set[str]) -> bool:
    if not keys:
        return False
    normalized = [_normalize(value) for value in values]
    return any(key in value for key in keys for value in normalized)


def _normalized_set(values: Iterable[str | None]) -> set[str]:
    normalized = (_normalize(value) for value in values)
    return {value for value in normalized if len(value) > 1}


def _normalize(value: str | None) -> str:
    return " ".join((value or "").split()).lower()


def _first_year(value: str | None) -> int | None:
    match = _YEAR_RE.search(value or "")
    return int(match.group(1)) if match else None
