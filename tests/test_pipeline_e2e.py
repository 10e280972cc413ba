from __future__ import annotations

import io
import json
import logging
from typing import Any

import fitz
import pytest
from docx import Document
from pydantic import ValidationError

from fillengine.container.introspector import DOCX_MEDIA_TYPE, PDF_MEDIA_TYPE
from fillengine.fields.models import TemplateField
from fillengine.orchestrator.pipeline import FillOrchestrator, FillRequest, fill_template
from fillengine.profile.models import Profile
from fillengine.utils.errors import AnalysisFailed, NoFillableTarget, UnsupportedFormat


class StubAnalysisService:
    def __init__(self, responses: list[dict[str, Any]]) -> None:
        self.responses = list(responses)
        self.schemas: list[str] = []
        self.contents: list[Any] = []

    async def generate(
        self, *, system_prompt: str, content: Any, schema: type[Any], temperature: float
    ) -> Any:
        self.schemas.append(schema.__name__)
        self.contents.append(content)
        return schema.model_validate(self.responses.pop(0))


class FakeBridge:
    def __init__(self) -> None:
        self.received: list[bytes] = []

    async def to_paginated_output(self, content: bytes) -> bytes:
        self.received.append(content)
        return b"%PDF-1.4 converted"


def _profile() -> Profile:
    return Profile.model_validate(
        {
            "fullName": "Jan de Vries",
            "location": "Rotterdam",
            "email": "jan@example.nl",
            "experience": [
                {
                    "title": "Planner",
                    "company": "Haven BV",
                    "startDate": "2020",
                    "isCurrentRole": True,
                },
                {
                    "title": "Medewerker",
                    "company": "Logistiek NV",
                    "startDate": "2016",
                    "endDate": "2020",
                },
            ],
        }
    )


def _form_pdf(names: list[str]) -> bytes:
    document = fitz.open()
    page = document.new_page(width=595, height=842)
    for offset, name in enumerate(names):
        widget = fitz.Widget()
        widget.field_name = name
        widget.field_type = fitz.PDF_WIDGET_TYPE_TEXT
        widget.rect = fitz.Rect(50, 50 + offset * 30, 300, 70 + offset * 30)
        page.add_widget(widget)
    data = document.tobytes()
    document.close()
    return data


def _docx(*texts: str) -> bytes:
    document = Document()
    for text in texts:
        document.add_paragraph(text)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def _events(caplog: pytest.LogCaptureFixture) -> list[dict[str, Any]]:
    return [
        json.loads(record.getMessage())
        for record in caplog.records
        if record.name == "fillengine.orchestrator"
    ]


@pytest.mark.anyio
async def test_dutch_pdf_form_is_filled_natively(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="fillengine.orchestrator")
    request = FillRequest(
        template=_form_pdf(["Naam", "Woonplaats", "Geboortedatum"]),
        profile=_profile(),
        custom_values={"birthDate": "01-01-1990"},
        request_id="req-form",
    )

    output = await FillOrchestrator().fill(request)

    assert output.media_type == PDF_MEDIA_TYPE
    assert output.report.method == "form"
    assert output.report.filled_field_names == ("Naam", "Woonplaats", "Geboortedatum")

    events = _events(caplog)
    assert [event["event"] for event in events] == [
        "received",
        "classified",
        "strategy_selected",
        "filled",
        "reported",
    ]
    assert {event["request_id"] for event in events} == {"req-form"}
    assert events[2]["strategy"] == "form"
    assert "Jan de Vries" not in caplog.text


@pytest.mark.anyio
async def test_configured_fields_are_drawn_when_form_has_no_match() -> None:
    template = _form_pdf(["Handtekening"])
    fields = [
        TemplateField.model_validate(
            {
                "name": "name",
                "x": 72,
                "y": 760,
                "mapping": {"type": "personal", "field": "fullName"},
            }
        ),
        TemplateField.model_validate(
            {
                "name": "job",
                "x": 72,
                "y": 700,
                "mapping": {"type": "experience", "index": 0, "field": "company"},
            }
        ),
    ]

    output = await fill_template(
        FillRequest(template=template, profile=_profile(), template_fields=fields)
    )

    assert output.report.method == "coordinates"
    assert output.report.filled_field_names == ("name", "job")
    with fitz.open(stream=output.content, filetype="pdf") as document:
        text = document[0].get_text()
    assert "Jan de Vries" in text
    assert "Haven BV" in text


@pytest.mark.anyio
async def test_fixed_layout_without_fillable_target_fails(
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO, logger="fillengine.orchestrator")
    request = FillRequest(template=_form_pdf([]), profile=_profile(), request_id="req-none")

    with pytest.raises(NoFillableTarget) as exc_info:
        await FillOrchestrator().fill(request)

    assert "configure fields manually" in str(exc_info.value)
    assert exc_info.value.report is not None
    assert exc_info.value.report.method == "none"
    failed = _events(caplog)[-1]
    assert failed["event"] == "failed"
    assert failed["error_type"] == "NoFillableTarget"
    assert failed["retryable"] is False


@pytest.mark.anyio
async def test_coordinate_fields_that_resolve_to_nothing_fail() -> None:
    fields = [
        TemplateField.model_validate(
            {"name": "phone", "x": 72, "y": 760, "mapping": {"type": "personal", "field": "phone"}}
        )
    ]
    request = FillRequest(template=_form_pdf([]), profile=_profile(), template_fields=fields)

    with pytest.raises(NoFillableTarget):
        await FillOrchestrator().fill(request)


@pytest.mark.anyio
async def test_flow_layout_document_is_filled_structurally() -> None:
    template = _docx("Werkervaring", "Functie - Bedrijf", "Periode")
    service = StubAnalysisService(
        [
            {
                "sections": [
                    {
                        "type": "work_experience",
                        "label": "Werkervaring",
                        "segmentIds": ["s0", "s1", "s2"],
                    }
                ],
                "repeatingBlocks": [
                    {
                        "sectionType": "work_experience",
                        "blockType": "paragraph_group",
                        "instances": [{"segmentIds": ["s1", "s2"]}],
                    }
                ],
            },
            {
                "fills": [
                    {"segmentId": "s1", "value": "Planner - Haven BV"},
                    {"segmentId": "s2", "value": "2020 - Heden"},
                ]
            },
        ]
    )

    output = await FillOrchestrator(analysis=service).fill(
        FillRequest(template=template, profile=_profile())
    )

    assert service.schemas == ["TemplateBlueprint", "ContentFillResponse"]
    assert output.media_type == DOCX_MEDIA_TYPE
    assert output.report.method == "structural"
    assert output.report.filled_field_names == ("s1", "s2")
    paragraphs = [paragraph.text for paragraph in Document(io.BytesIO(output.content)).paragraphs]
    assert paragraphs == ["Werkervaring", "Planner - Haven BV", "2020 - Heden"]


@pytest.mark.anyio
async def test_flow_layout_pdf_output_goes_through_bridge() -> None:
    template = _docx("Naam: {{naam}}")
    bridge = FakeBridge()

    output = await FillOrchestrator(bridge=bridge).fill(
        FillRequest(template=template, profile=_profile(), output_format="pdf")
    )

    assert output.media_type == PDF_MEDIA_TYPE
    assert output.content == b"%PDF-1.4 converted"
    assert output.report.method == "form"
    assert len(bridge.received) == 1


@pytest.mark.anyio
async def test_structural_fill_without_service_is_not_retryable() -> None:
    with pytest.raises(AnalysisFailed) as exc_info:
        await FillOrchestrator().fill(
            FillRequest(template=_docx("Werkervaring"), profile=_profile())
        )

    assert exc_info.value.retryable is False


@pytest.mark.anyio
async def test_structural_fill_with_no_usable_values_is_retryable() -> None:
    service = StubAnalysisService(
        [
            {"sections": [{"type": "other", "segmentIds": ["s0"]}]},
            {"fills": [{"segmentId": "s9", "value": "nothing here"}]},
        ]
    )

    with pytest.raises(AnalysisFailed) as exc_info:
        await FillOrchestrator(analysis=service).fill(
            FillRequest(template=_docx("Naam"), profile=_profile())
        )

    assert exc_info.value.retryable is True
    assert exc_info.value.report is not None
    assert exc_info.value.report.warnings == ("dropped fill for unknown segment s9",)


@pytest.mark.anyio
async def test_unsupported_bytes_fail_fast(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="fillengine.orchestrator")

    with pytest.raises(UnsupportedFormat):
        await FillOrchestrator().fill(FillRequest(template=b"hello", profile=_profile()))

    assert [event["event"] for event in _events(caplog)] == ["received", "failed"]


@pytest.mark.anyio
async def test_split_name_widgets_get_first_and_last_name() -> None:
    profile = Profile.model_validate({"fullName": "Jan de Vries", "email": "jan@x.nl"})

    output = await FillOrchestrator().fill(
        FillRequest(template=_form_pdf(["Voornaam", "Achternaam", "Email"]), profile=profile)
    )

    assert output.report.method == "form"
    assert output.report.filled_field_names == ("Voornaam", "Achternaam", "Email")
    with fitz.open(stream=output.content, filetype="pdf") as document:
        values = {widget.field_name: widget.field_value for widget in document[0].widgets()}
    assert values == {"Voornaam": "Jan", "Achternaam": "de Vries", "Email": "jan@x.nl"}


@pytest.mark.anyio
async def test_long_description_is_capped_at_max_lines() -> None:
    description = ("Plannen van transporten " * 10)[:220]
    profile = Profile.model_validate(
        {
            "fullName": "Jan de Vries",
            "experience": [
                {"title": "Planner", "company": "Haven BV", "description": description}
            ],
        }
    )
    fields = [
        TemplateField.model_validate(
            {
                "name": "description",
                "x": 100,
                "y": 700,
                "width": 300,
                "isMultiLine": True,
                "maxLines": 2,
                "mapping": {"type": "experience", "index": 0, "field": "description"},
            }
        )
    ]

    output = await FillOrchestrator().fill(
        FillRequest(template=_form_pdf([]), profile=profile, template_fields=fields)
    )

    assert output.report.method == "coordinates"
    with fitz.open(stream=output.content, filetype="pdf") as document:
        lines = [line for line in document[0].get_text().splitlines() if line.strip()]
    assert len(lines) == 2
    assert all(line.startswith(("Plannen", "van", "transporten")) for line in lines)


@pytest.mark.anyio
async def test_two_experience_groups_receive_the_two_most_recent_roles() -> None:
    profile = Profile.model_validate(
        {
            "fullName": "Eva Bakker",
            "experience": [
                {"title": "Developer", "company": "Alpha", "startDate": "2012", "endDate": "2015"},
                {"title": "Lead", "company": "Beta", "startDate": "2021", "isCurrentRole": True},
                {"title": "Engineer", "company": "Gamma", "startDate": "2015", "endDate": "2018"},
                {"title": "Architect", "company": "Delta", "startDate": "2018", "endDate": "2021"},
                {"title": "Stagiair", "company": "Epsilon", "startDate": "2010", "endDate": "2012"},
            ],
        }
    )
    template = _docx("Werkervaring", "Functie - Bedrijf", "Periode", "Functie - Bedrijf", "Periode")
    service = StubAnalysisService(
        [
            {
                "sections": [
                    {
                        "type": "work_experience",
                        "label": "Werkervaring",
                        "segmentIds": ["s0", "s1", "s2", "s3", "s4"],
                    }
                ],
                "repeatingBlocks": [
                    {
                        "sectionType": "work_experience",
                        "blockType": "paragraph_group",
                        "instances": [{"segmentIds": ["s1", "s2"]}, {"segmentIds": ["s3", "s4"]}],
                    }
                ],
            },
            {
                "fills": [
                    {"segmentId": "s1", "value": "Lead - Beta"},
                    {"segmentId": "s2", "value": "2021 - Heden"},
                    {"segmentId": "s3", "value": "Architect - Delta"},
                    {"segmentId": "s4", "value": "2018 - 2021"},
                ]
            },
        ]
    )

    output = await FillOrchestrator(analysis=service).fill(
        FillRequest(template=template, profile=profile)
    )

    assert output.report.method == "structural"
    plan = service.contents[1].split("ASSIGNMENT PLAN:\n", 1)[1].split("\n\nPROFILE DATA:")[0]
    assert "Beta" in plan
    assert "Delta" in plan
    assert not any(company in plan for company in ("Alpha", "Gamma", "Epsilon"))
    paragraphs = [paragraph.text for paragraph in Document(io.BytesIO(output.content)).paragraphs]
    assert paragraphs == [
        "Werkervaring",
        "Lead - Beta",
        "2021 - Heden",
        "Architect - Delta",
        "2018 - 2021",
    ]


@pytest.mark.anyio
async def test_fill_report_cannot_be_changed_after_the_fill() -> None:
    output = await FillOrchestrator().fill(
        FillRequest(template=_form_pdf(["Naam"]), profile=_profile())
    )

    with pytest.raises(AttributeError):
        output.report.filled_field_names.append("Extra")  # type: ignore[attr-defined]
    with pytest.raises(ValidationError):
        output.report.warnings = ("late warning",)  # type: ignore[misc]
    assert output.report.filled_field_names == ("Naam",)


class ExplodingAnalysisService:
    async def generate(
        self, *, system_prompt: str, content: Any, schema: type[Any], temperature: float
    ) -> Any:
        raise RuntimeError("unexpected service bug")


@pytest.mark.anyio
async def test_unexpected_error_still_ends_in_failed_state(
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO, logger="fillengine.orchestrator")
    orchestrator = FillOrchestrator(analysis=ExplodingAnalysisService())

    with pytest.raises(RuntimeError, match="unexpected service bug"):
        await orchestrator.fill(
            FillRequest(template=_docx("Werkervaring"), profile=_profile(), request_id="req-bug")
        )

    failed = _events(caplog)[-1]
    assert failed["event"] == "failed"
    assert failed["error_type"] == "RuntimeError"
    assert failed["retryable"] is False
