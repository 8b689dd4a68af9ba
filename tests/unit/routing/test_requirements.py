"""Unit tests for agent_dispatch.routing.requirements module."""

from __future__ import annotations

import dataclasses

import pytest

from agent_dispatch.core.types import Level
from agent_dispatch.routing.requirements import (
    AttachmentDescriptor,
    RequirementExtractor,
    TaskRequirements,
    classify_attachment,
    extract_fields,
    extract_requirements,
)


class TestTaskRequirements:
    """Test the TaskRequirements value object."""

    def test_default_profile(self) -> None:
        """The default is medium/medium/low with no capabilities."""
        default = TaskRequirements.default()
        assert default.complexity == Level.MEDIUM
        assert default.urgency == Level.MEDIUM
        assert default.compliance_risk == Level.LOW
        assert default.required_capabilities == frozenset()
        assert default.document_types == frozenset()
        assert default.estimated_data_volume == 0.0
        assert default.is_wildcard

    def test_is_frozen(self) -> None:
        """Profiles cannot be modified after creation."""
        requirements = TaskRequirements()
        with pytest.raises(dataclasses.FrozenInstanceError):
            requirements.urgency = Level.HIGH  # type: ignore[misc]

    def test_tags_are_normalized(self) -> None:
        """Tags are stripped and lower-cased; blanks are dropped."""
        requirements = TaskRequirements(
            required_capabilities=frozenset({" OCR ", "Fraud_Detection", " "}),
            document_types=frozenset({"PDF"}),
        )
        assert requirements.required_capabilities == frozenset({"ocr", "fraud_detection"})
        assert requirements.document_types == frozenset({"pdf"})

    def test_levels_accept_strings(self) -> None:
        """Level fields accept their string values."""
        requirements = TaskRequirements(complexity="high", urgency="low")  # type: ignore[arg-type]
        assert requirements.complexity is Level.HIGH
        assert requirements.urgency is Level.LOW

    def test_dict_round_trip(self) -> None:
        """from_dict rebuilds what to_dict wrote."""
        requirements = TaskRequirements(
            document_types=frozenset({"image", "pdf"}),
            complexity=Level.HIGH,
            urgency=Level.LOW,
            required_capabilities=frozenset({"ocr", "fraud_detection"}),
            estimated_data_volume=12.5,
            compliance_risk=Level.MEDIUM,
        )
        data = requirements.to_dict()
        assert data["required_capabilities"] == ["fraud_detection", "ocr"]
        assert TaskRequirements.from_dict(data) == requirements

    def test_merged_with(self) -> None:
        """Merging unions tags, keeps the higher levels and adds volumes."""
        first = TaskRequirements(
            required_capabilities=frozenset({"ocr"}),
            complexity=Level.HIGH,
            urgency=Level.LOW,
            estimated_data_volume=1.0,
        )
        second = TaskRequirements(
            required_capabilities=frozenset({"fraud_detection"}),
            document_types=frozenset({"image"}),
            complexity=Level.LOW,
            urgency=Level.HIGH,
            estimated_data_volume=2.0,
            compliance_risk=Level.MEDIUM,
        )
        merged = first.merged_with(second)
        assert merged.required_capabilities == frozenset({"ocr", "fraud_detection"})
        assert merged.document_types == frozenset({"image"})
        assert merged.complexity == Level.HIGH
        assert merged.urgency == Level.HIGH
        assert merged.compliance_risk == Level.MEDIUM
        assert merged.estimated_data_volume == pytest.approx(3.0)


class TestClassifyAttachment:
    """Test attachment document type detection."""

    def test_extension(self) -> None:
        """File extensions map to document types."""
        assert classify_attachment(AttachmentDescriptor("front.JPG")) == frozenset({"image"})
        assert classify_attachment(AttachmentDescriptor("claim.pdf")) == frozenset({"pdf"})

    def test_declared_type(self) -> None:
        """Declared MIME types are used when the name has no extension."""
        scan = AttachmentDescriptor("scan", declared_type="application/pdf")
        photo = AttachmentDescriptor("upload", declared_type="image/png")
        assert classify_attachment(scan) == frozenset({"pdf"})
        assert classify_attachment(photo) == frozenset({"image"})

    def test_name_hints(self) -> None:
        """Words in the file name identify the document kind."""
        tags = classify_attachment(AttachmentDescriptor("laudo_front.jpg"))
        assert tags == frozenset({"image", "assessment-report"})

    def test_unknown(self) -> None:
        """Unrecognized attachments produce no tags."""
        assert classify_attachment(AttachmentDescriptor("blob.bin")) == frozenset()


class TestExtractRequirements:
    """Test extract_requirements heuristics."""

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_empty_input_returns_default(self, query: str | None) -> None:
        """Empty requests yield the default profile."""
        assert extract_requirements(query, []) == TaskRequirements.default()

    def test_non_string_query_returns_default(self) -> None:
        """A malformed query never raises."""
        assert extract_requirements(12345, []) == TaskRequirements.default()  # type: ignore[arg-type]

    def test_malformed_attachment_returns_default(self) -> None:
        """A negative attachment size never raises."""
        bad = AttachmentDescriptor("photo.jpg", size_bytes=-1)
        assert extract_requirements("scan this", [bad]) == TaskRequirements.default()

    def test_non_descriptor_attachment_returns_default(self) -> None:
        """Attachments of the wrong type never raise."""
        result = extract_requirements("scan this", ["photo.jpg"])  # type: ignore[list-item]
        assert result == TaskRequirements.default()

    @pytest.mark.parametrize(
        "attachments",
        [
            [AttachmentDescriptor(name=None)],  # type: ignore[arg-type]
            [AttachmentDescriptor(name=b"photo.jpg")],  # type: ignore[arg-type]
            [AttachmentDescriptor(name="photo.jpg", declared_type=123)],  # type: ignore[arg-type]
            5,
            object(),
        ],
    )
    def test_malformed_attachment_fields_return_default(self, attachments: object) -> None:
        """Bad attachment names, types or containers never raise."""
        result = extract_requirements("scan this", attachments)  # type: ignore[arg-type]
        assert result == TaskRequirements.default()

    def test_is_deterministic(self) -> None:
        """The same input always yields the same profile."""
        attachments = [AttachmentDescriptor("front.jpg", "image/jpeg", 2048)]
        first = extract_requirements("Suspicious claim, photos attached", attachments)
        second = extract_requirements("Suspicious claim, photos attached", attachments)
        assert first == second

    def test_fraud_claim_with_photos(self) -> None:
        """An urgent suspicious claim needs fraud detection, OCR and risk assessment."""
        requirements = extract_requirements(
            "Urgent: suspicious claim with photos of the damage",
            [AttachmentDescriptor("front.jpg", "image/jpeg", 2048)],
        )
        assert {"fraud_detection", "ocr", "risk_assessment"} <= (
            requirements.required_capabilities
        )
        assert requirements.document_types == frozenset({"image"})
        assert requirements.urgency == Level.HIGH

    def test_fraud_keyword_raises_complexity(self) -> None:
        """Fraud investigations are high complexity."""
        requirements = extract_requirements("Possible fraud in this claim")
        assert requirements.complexity == Level.HIGH
        assert "fraud_detection" in requirements.required_capabilities

    def test_pdf_implies_ocr_and_parsing(self) -> None:
        """A PDF attachment adds OCR and document parsing."""
        requirements = extract_requirements(
            "please look at this", [AttachmentDescriptor("policy.pdf")]
        )
        assert {"ocr", "document_parsing", "coverage_analysis"} <= (
            requirements.required_capabilities
        )
        assert requirements.document_types == frozenset({"pdf", "policy"})

    def test_simple_question_is_low_complexity(self) -> None:
        """Simple questions stay low complexity."""
        requirements = extract_requirements("Simple status question")
        assert requirements.complexity == Level.LOW
        assert requirements.required_capabilities == frozenset({"triage"})

    def test_many_attachments_force_high_complexity(self) -> None:
        """Five or more attachments make a request high complexity."""
        attachments = [AttachmentDescriptor(f"page{i}.png") for i in range(5)]
        assert extract_requirements("simple", attachments).complexity == Level.HIGH

    def test_data_volume_in_kilobytes(self) -> None:
        """Volume counts attachment bytes plus query bytes, in kilobytes."""
        requirements = extract_requirements("", [AttachmentDescriptor("a.pdf", size_bytes=2048)])
        assert requirements.estimated_data_volume == pytest.approx(2.0)

    def test_urgency_levels(self) -> None:
        """Urgency keywords raise or lower urgency; otherwise it is medium."""
        assert extract_requirements("urgent claim").urgency == Level.HIGH
        assert extract_requirements("no rush, whenever").urgency == Level.LOW
        assert extract_requirements("a claim").urgency == Level.MEDIUM

    def test_compliance_levels(self) -> None:
        """Legal and regulatory wording raises compliance risk."""
        assert extract_requirements("lawsuit over the contract").compliance_risk == Level.HIGH
        assert extract_requirements("internal audit request").compliance_risk == Level.MEDIUM
        assert extract_requirements("a claim").compliance_risk == Level.LOW

    def test_portuguese_keywords(self) -> None:
        """Portuguese wording is recognized."""
        requirements = extract_requirements("Sinistro urgente com suspeita de fraude")
        assert {"risk_assessment", "fraud_detection"} <= requirements.required_capabilities
        assert requirements.urgency == Level.HIGH

    def test_extractor_matches_function(self) -> None:
        """RequirementExtractor delegates to extract_requirements."""
        extractor = RequirementExtractor()
        assert extractor.extract("review the contract") == extract_requirements(
            "review the contract"
        )


class TestExtractFields:
    """Test structured field extraction from query text."""

    def test_brazilian_claim(self) -> None:
        """Amount, date, claim type and documents are extracted."""
        fields = extract_fields(
            "Car accident on 03/02/2024, damage R$ 12.500,00, I have the laudo and nota fiscal"
        )
        assert fields["estimated_amount"] == pytest.approx(12500.0)
        assert fields["mentioned_date"] == "03/02/2024"
        assert fields["claim_type"] == "auto"
        assert fields["mentioned_documents"] == ["assessment-report", "invoice"]

    @pytest.mark.parametrize(
        ("text", "amount"),
        [
            ("cost was $1,234.56", 1234.56),
            ("about US$ 50.000 in damage", 50000.0),
            ("only €75", 75.0),
            ("R$ 50,5 total", 50.5),
        ],
    )
    def test_amount_formats(self, text: str, amount: float) -> None:
        """Both decimal conventions are parsed."""
        assert extract_fields(text)["estimated_amount"] == pytest.approx(amount)

    def test_property_claim(self) -> None:
        """Home-related wording marks a property claim."""
        assert extract_fields("water damage in my house")["claim_type"] == "property"

    def test_nothing_found(self) -> None:
        """Text without recognizable fields yields an empty dict."""
        assert extract_fields("hello there") == {}
        assert extract_fields("") == {}
        assert extract_fields(None) == {}
