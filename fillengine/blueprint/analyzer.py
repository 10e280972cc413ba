"""Ask the analysis service for a template blueprint and normalize it."""

from __future__ import annotations

import logging

from fillengine.blueprint import prompts
from fillengine.blueprint.models import (
    BlockInstance,
    BlueprintSection,
    RepeatingBlock,
    TemplateBlueprint,
)
from fillengine.blueprint.structure import StructuralMap
from fillengine.llm.service import AnalysisService
from fillengine.profile.models import ProfileCounts

logger = logging.getLogger(__name__)

ANALYSIS_TEMPERATURE = 0.1


async def analyze_structure(
    service: AnalysisService,
    structural_map: StructuralMap,
    profile_counts: ProfileCounts,
    *,
    temperature: float = ANALYSIS_TEMPERATURE,
) -> TemplateBlueprint:
    """Return the blueprint of a template.

    AnalysisFailed and RateLimited from the service propagate unchanged; no
    structure is invented when the service cannot answer.
    """

    raw = await service.generate(
        system_prompt=prompts.ANALYSIS_SYSTEM_PROMPT,
        content=prompts.analysis_user_prompt(
            structural_map.text,
            profile_counts.work_experience,
            profile_counts.education,
        ),
        schema=TemplateBlueprint,
        temperature=temperature,
    )
    return normalize_blueprint(raw, structural_map)


def normalize_blueprint(
    blueprint: TemplateBlueprint, structural_map: StructuralMap
) -> TemplateBlueprint:
    """Make a service blueprint consistent with the segment map.

    Unknown ids are dropped, a segment claimed twice stays with its first
    section, unclaimed segments go to an "other" section and block instances
    are ordered by their first segment.
    """

    order = {segment.id: index for index, segment in enumerate(structural_map.segments)}
    claimed: set[str] = set()
    sections: list[BlueprintSection] = []
    dropped = 0

    for section in blueprint.sections:
        kept: list[str] = []
        for segment_id in section.segment_ids:
            if segment_id not in order or segment_id in claimed:
                dropped += 1
                continue
            claimed.add(segment_id)
            kept.append(segment_id)
        if kept:
            sections.append(section.model_copy(update={"segment_ids": kept}))

    leftovers = [segment.id for segment in structural_map.segments if segment.id not in claimed]
    if leftovers:
        sections.append(BlueprintSection(type="other", label="", segment_ids=leftovers))

    blocks: list[RepeatingBlock] = []
    for block in blueprint.repeating_blocks:
        instances = []
        for instance in block.instances:
            ids = [segment_id for segment_id in instance.segment_ids if segment_id in order]
            if ids:
                instances.append(BlockInstance(segment_ids=sorted(ids, key=order.__getitem__)))
        instances.sort(key=lambda item: order[item.segment_ids[0]])
        if instances:
            blocks.append(block.model_copy(update={"instances": instances}))

    if dropped:
        logger.warning("blueprint referenced %d unknown or duplicate segment ids", dropped)

    return TemplateBlueprint(sections=sections, repeating_blocks=blocks)
