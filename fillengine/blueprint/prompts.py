"""Prompt text for structural analysis and blueprint filling."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from fillengine.blueprint.models import DescriptionFormat
from fillengine.fields.resolver import PRESENT_LABELS, format_period
from fillengine.profile.models import EducationEntry, ExperienceEntry, JobVacancy, Profile

_MAX_DESCRIPTION_CHARS = 800
_MAX_SKILLS = 20

ANALYSIS_SYSTEM_PROMPT = """You analyze the structure of CV/resume document templates.
You receive a segment map of the template. Identify:

1. SECTIONS: which segments belong to which CV section.
2. REPEATING BLOCKS: groups of segments that form one entry of a list
   (one job, one education) and appear several times.

Rules:
- Segment ids look like "s0", "s1". Several ids in one cell appear as "s0,s1".
- A section header is a standalone text such as "Work experience",
  "Werkervaring", "Education" or "Opleidingen". Include header segments in
  their section.
- Every segment belongs to exactly one section; use "other" when unsure.
- Table-based repeating blocks use blockType "table_rows"; paragraph-based
  ones use "paragraph_group".
- List block instances in document order.
- [TAB] separates label/value parts inside one paragraph.
"""

_FILL_RULES = {
    "en": """You fill CV templates with profile data. You receive the template's
segment map, its section blueprint, an assignment plan and the profile.

Rules:
- Use only data from the profile. Never invent employers, schools or years.
- Follow the assignment plan exactly: each block instance receives only the
  entry assigned to it, and no entry appears in two instances.
- Never change section header segments.
- Keep content inside its section: education values only in education
  segments, work values only in work experience segments, skills only in
  skill segments.
- For "Label : " segments return only the value, not the label.
- Use \\n for a line break and \\t for a tab inside one segment.
- Return an empty string for template text that should disappear.
- Only return segments that need a new value.""",
    "nl": """Je vult cv-templates met profielgegevens. Je krijgt de segmentkaart van de
template, de sectie-indeling, een toewijzingsplan en het profiel.

Regels:
- Gebruik alleen gegevens uit het profiel. Verzin nooit werkgevers, scholen of jaren.
- Volg het toewijzingsplan exact: elk blok krijgt alleen de toegewezen ervaring
  of opleiding, en geen enkele ervaring komt in twee blokken.
- Wijzig nooit segmenten met een sectiekop.
- Houd inhoud binnen de eigen sectie: opleidingen alleen in opleidingssegmenten,
  werkervaring alleen in werkervaringsegmenten, vaardigheden alleen bij vaardigheden.
- Voor "Label : " segmenten retourneer je alleen de waarde, niet het label.
- Gebruik \\n voor een nieuwe regel en \\t voor een tab binnen een segment.
- Retourneer een lege tekst voor templatetekst die moet verdwijnen.
- Retourneer alleen segmenten die een nieuwe waarde krijgen.""",
}

_FORMAT_INSTRUCTIONS = {
    ("en", "bullets"): 'Write work experience descriptions as bullet points starting with "- ".',
    ("en", "paragraph"): "Write work experience descriptions as short flowing paragraphs.",
    ("nl", "bullets"): 'Schrijf werkzaamheden als opsommingstekens die beginnen met "- ".',
    ("nl", "paragraph"): "Schrijf werkzaamheden als korte doorlopende alinea's.",
}

_LABELS = {
    "en": {
        "name": "Name",
        "location": "Location",
        "phone": "Phone",
        "birth": "Date of birth",
        "nationality": "Nationality",
        "experience": "Work experience",
        "position": "Position",
        "company": "Company",
        "period": "Period",
        "tasks": "Tasks",
        "education": "Education",
        "degree": "Degree",
        "field": "Field of study",
        "skills": "SKILLS",
        "languages": "LANGUAGES",
        "job_title": "Job title",
        "requirements": "Requirements",
        "unknown": "Unknown",
    },
    "nl": {
        "name": "Naam",
        "location": "Locatie",
        "phone": "Telefoon",
        "birth": "Geboortedatum",
        "nationality": "Nationaliteit",
        "experience": "Werkervaring",
        "position": "Functie",
        "company": "Bedrijf",
        "period": "Periode",
        "tasks": "Werkzaamheden",
        "education": "Opleiding",
        "degree": "Diploma",
        "field": "Richting",
        "skills": "VAARDIGHEDEN",
        "languages": "TALEN",
        "job_title": "Functietitel",
        "requirements": "Vereisten",
        "unknown": "Onbekend",
    },
}


def analysis_user_prompt(template_map: str, work_experience: int, education: int) -> str:
    return (
        f"TEMPLATE STRUCTURE:\n{template_map}\n\n"
        "PROFILE INFO:\n"
        f"- Work experiences: {work_experience}\n"
        f"- Education entries: {education}\n\n"
        "Identify all sections and repeating blocks and return the blueprint."
    )


def fill_system_prompt(language: str) -> str:
    return _FILL_RULES.get(language, _FILL_RULES["nl"])


def format_instruction(language: str, description_format: DescriptionFormat) -> str:
    key = (language if language in ("en", "nl") else "nl", description_format)
    return _FORMAT_INSTRUCTIONS[key]


def profile_summary(
    profile: Profile,
    language: str,
    custom_values: Mapping[str, str] | None = None,
) -> str:
    labels = _labels(language)
    custom = custom_values or {}
    parts = [f"{labels['name']}: {profile.full_name or labels['unknown']}"]

    if profile.headline:
        parts.append(f"Headline: {profile.headline}")
    if profile.location:
        parts.append(f"{labels['location']}: {profile.location}")
    if profile.email:
        parts.append(f"Email: {profile.email}")
    if profile.phone:
        parts.append(f"{labels['phone']}: {profile.phone}")
    if custom.get("birthDate"):
        parts.append(f"{labels['birth']}: {custom['birthDate']}")
    if custom.get("nationality"):
        parts.append(f"{labels['nationality']}: {custom['nationality']}")
    if profile.about:
        parts.append(f"\nSUMMARY:\n{profile.about[:_MAX_DESCRIPTION_CHARS]}")

    if profile.skills:
        parts.append(f"\n{labels['skills']}:")
        parts.append(", ".join(skill.name for skill in profile.skills[:_MAX_SKILLS]))

    if profile.languages:
        parts.append(f"\n{labels['languages']}:")
        for entry in profile.languages:
            suffix = f" ({entry.proficiency})" if entry.proficiency else ""
            parts.append(f"- {entry.language}{suffix}")

    return "\n".join(parts)


def experience_block(entry: ExperienceEntry, ordinal: int, language: str) -> str:
    labels = _labels(language)
    present = PRESENT_LABELS.get(language, PRESENT_LABELS["nl"])
    period = format_period(
        entry.start_date, entry.end_date, current=entry.is_current_role, present=present
    )
    lines = [
        f"{labels['experience']} #{ordinal}:",
        f"   {labels['position']}: {entry.title or labels['unknown']}",
        f"   {labels['company']}: {entry.company or labels['unknown']}",
        f"   {labels['period']}: {period or labels['unknown']}",
    ]
    if entry.description:
        lines.append(f"   {labels['tasks']}: {entry.description[:_MAX_DESCRIPTION_CHARS]}")
    return "\n".join(lines)


def education_block(entry: EducationEntry, ordinal: int, language: str) -> str:
    labels = _labels(language)
    years = " - ".join(
        year for year in ((entry.start_year or "").strip(), (entry.end_year or "").strip()) if year
    )
    return "\n".join(
        [
            f"{labels['education']} #{ordinal}:",
            f"   School: {entry.school or labels['unknown']}",
            f"   {labels['degree']}: {entry.degree or labels['unknown']}",
            f"   {labels['field']}: {entry.field_of_study or labels['unknown']}",
            f"   {labels['period']}: {years or labels['unknown']}",
        ]
    )


def job_summary(job: JobVacancy, language: str) -> str:
    labels = _labels(language)
    parts = [f"{labels['job_title']}: {job.title}"]
    if job.company:
        parts.append(f"{labels['company']}: {job.company}")
    if job.requirements:
        parts.append(f"{labels['requirements']}: {', '.join(job.requirements)}")
    if job.keywords:
        parts.append(f"Keywords: {', '.join(job.keywords)}")
    return "\n".join(parts)


def fill_user_prompt(
    *,
    template_map: str,
    blueprint_json: str,
    assignment_plan: Sequence[str],
    profile_text: str,
    job_text: str | None,
    format_text: str,
    custom_instructions: str | None,
) -> str:
    sections = [
        f"TEMPLATE STRUCTURE:\n{template_map}",
        f"BLUEPRINT:\n{blueprint_json}",
        "ASSIGNMENT PLAN:\n" + ("\n\n".join(assignment_plan) if assignment_plan else "(none)"),
        f"PROFILE DATA:\n{profile_text}",
    ]
    if job_text:
        sections.append(f"TARGET JOB:\n{job_text}")
    sections.append(f"FORMAT:\n{format_text}")
    if custom_instructions:
        sections.append(f"USER INSTRUCTIONS:\n{custom_instructions}")
    return "\n\n".join(sections)


def _labels(language: str) -> dict[str, str]:
    return _LABELS.get(language, _LABELS["nl"])
