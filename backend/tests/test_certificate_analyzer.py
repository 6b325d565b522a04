import asyncio
import io

import pytest
from PIL import Image

from skillvault.models.certification import VerificationStatus
from skillvault.services.certificate_analyzer import (
    AuthenticityReport,
    CertificateAnalysis,
    CertificateAnalysisError,
    CertificateAnalyzer,
    build_analysis_prompt,
    derive_verification_status,
    extract_json_object,
    extract_text_from_pdf,
    process_image_for_ai,
)

from conftest import ANALYSIS_JSON, AUTHENTICITY_JSON, FakeGenAIClient, make_pdf, make_png

USER_INPUT = {
    "title": "AWS Cloud Practitioner",
    "issuer": "Amazon Web Services",
    "issue_date": "2023-05-12",
    "credential_id": None,
}


@pytest.fixture
def fake_client():
    return FakeGenAIClient()


@pytest.fixture
def analyzer(fake_client):
    return CertificateAnalyzer(fake_client, text_model="text-model", vision_model="vision-model", max_attempts=2)


def run(coro):
    return asyncio.run(coro)


# ============================================================================
# JSON extraction
# ============================================================================

def test_extract_json_object_from_fenced_prose():
    text = 'Here is the result:\n```json\n{"a": {"b": [1, 2]}, "c": null}\n```\nThanks!'
    assert extract_json_object(text) == {"a": {"b": [1, 2]}, "c": None}


def test_extract_json_object_without_json():
    with pytest.raises(ValueError, match="No valid JSON found in response"):
        extract_json_object("I cannot read this certificate.")


def test_extract_json_object_invalid_json():
    with pytest.raises(ValueError):
        extract_json_object("{title: 'missing quotes'}")


# ============================================================================
# File preparation
# ============================================================================

def test_extract_text_from_pdf():
    text = extract_text_from_pdf(make_pdf("Certificate of Excellence"))
    assert "Certificate of Excellence" in text


def test_extract_text_from_invalid_pdf():
    with pytest.raises(CertificateAnalysisError, match="Failed to extract text from PDF"):
        extract_text_from_pdf(b"not a pdf at all")


def test_process_image_fits_inside_bounds():
    processed = process_image_for_ai(make_png(size=(2048, 1024)))
    with Image.open(io.BytesIO(processed)) as img:
        assert img.format == "PNG"
        assert img.size == (1024, 512)


def test_process_image_does_not_upscale():
    processed = process_image_for_ai(make_png(size=(300, 200)))
    with Image.open(io.BytesIO(processed)) as img:
        assert img.size == (300, 200)


def test_process_image_converts_jpeg_cmyk():
    output = io.BytesIO()
    Image.new("CMYK", (50, 50)).save(output, format="JPEG")
    processed = process_image_for_ai(output.getvalue())
    with Image.open(io.BytesIO(processed)) as img:
        assert img.format == "PNG"
        assert img.mode == "RGB"


def test_process_image_rejects_garbage():
    with pytest.raises(CertificateAnalysisError, match="Failed to process image"):
        process_image_for_ai(b"garbage")


# ============================================================================
# Analysis pipeline
# ============================================================================

def test_prompt_contains_user_input():
    prompt = build_analysis_prompt(USER_INPUT)
    assert '"title": "AWS Cloud Practitioner"' in prompt
    assert '"credential_id": null' in prompt
    assert "Return ONLY the JSON object" in prompt


def test_analyze_pdf_uses_text_model(analyzer, fake_client):
    fake_client.models.responses = [ANALYSIS_JSON]

    result = run(analyzer.analyze_certificate(make_pdf(), "pdf", USER_INPUT))

    assert isinstance(result, CertificateAnalysis)
    assert result.extracted_info.credential_id == "AWS-CP-1234"
    assert result.suggested_skills == ["AWS", "Cloud Computing"]

    call = fake_client.models.calls[0]
    assert call["model"] == "text-model"
    assert len(call["contents"]) == 1
    assert "Analyze this certificate text:" in call["contents"][0]
    assert "Amazon Web Services" in call["contents"][0]


def test_analyze_image_uses_vision_model(analyzer, fake_client):
    fake_client.models.responses = [ANALYSIS_JSON]

    run(analyzer.analyze_certificate(make_png(), "image", USER_INPUT))

    call = fake_client.models.calls[0]
    assert call["model"] == "vision-model"
    prompt, image_part = call["contents"]
    assert "certificate analyzer" in prompt
    assert image_part.inline_data.mime_type == "image/png"


def test_textless_pdf_falls_back_to_vision(analyzer, fake_client):
    fake_client.models.responses = [ANALYSIS_JSON]

    run(analyzer.analyze_certificate(make_pdf(text=""), "pdf", USER_INPUT))

    assert fake_client.models.calls[0]["model"] == "vision-model"


def test_retry_after_unparseable_response(analyzer, fake_client):
    fake_client.models.responses = ["Sorry, here you go: not json", ANALYSIS_JSON]

    result = run(analyzer.analyze_certificate(make_pdf(), "pdf", USER_INPUT))

    assert result.extracted_info.title == "AWS Cloud Practitioner"
    assert len(fake_client.models.calls) == 2


def test_retry_after_api_error(analyzer, fake_client):
    fake_client.models.responses = [RuntimeError("503 overloaded"), ANALYSIS_JSON]

    run(analyzer.analyze_certificate(make_pdf(), "pdf", USER_INPUT))

    assert len(fake_client.models.calls) == 2


def test_gives_up_after_max_attempts(analyzer, fake_client):
    fake_client.models.responses = ['{"title": "only"}', '{"title": "still wrong"}', ANALYSIS_JSON]

    with pytest.raises(CertificateAnalysisError) as exc_info:
        run(analyzer.analyze_certificate(make_pdf(), "pdf", USER_INPUT))

    assert str(exc_info.value) == (
        "Failed to analyze certificate: AI returned invalid response structure"
    )
    assert len(fake_client.models.calls) == 2


def test_null_arrays_are_coerced(analyzer, fake_client):
    fake_client.models.responses = ["""{
        "extracted_info": {"title": "Cert", "issuer": null, "issue_date": null, "credential_id": 42},
        "validation": {"matches": null, "discrepancies": ["issuer differs"]},
        "suggested_skills": null
    }"""]

    result = run(analyzer.analyze_certificate(make_png(), "image", USER_INPUT))

    assert result.validation.matches == []
    assert result.validation.discrepancies == ["issuer differs"]
    assert result.suggested_skills == []
    assert result.extracted_info.credential_id == "42"
    assert result.category is None


@pytest.mark.parametrize("file_bytes, file_type, message", [
    (b"", "pdf", "No file buffer provided"),
    (b"data", "", "File type not specified"),
    (b"data", "docx", "Invalid file type: docx"),
])
def test_invalid_input(analyzer, fake_client, file_bytes, file_type, message):
    with pytest.raises(CertificateAnalysisError, match=message):
        run(analyzer.analyze_certificate(file_bytes, file_type, USER_INPUT))
    assert fake_client.models.calls == []


# ============================================================================
# Authenticity
# ============================================================================

def test_validate_authenticity(analyzer, fake_client):
    fake_client.models.responses = [AUTHENTICITY_JSON]
    analysis = CertificateAnalysis.model_validate_json(ANALYSIS_JSON)

    report = run(analyzer.validate_certificate_authenticity(analysis))

    assert report.authenticity_score == pytest.approx(0.93)
    assert report.confidence_level == "high"
    assert "AWS-CP-1234" in fake_client.models.calls[0]["contents"][0]


def test_validate_authenticity_rejects_out_of_range_score(analyzer, fake_client):
    bad = '{"authenticity_score": 7, "confidence_level": "High", "flags": [], "recommendations": []}'
    fake_client.models.responses = [bad, bad]
    analysis = CertificateAnalysis.model_validate_json(ANALYSIS_JSON)

    with pytest.raises(CertificateAnalysisError, match="Failed to validate certificate authenticity"):
        run(analyzer.validate_certificate_authenticity(analysis))


def _report(score, confidence="high"):
    return AuthenticityReport(authenticity_score=score, confidence_level=confidence)


def test_verification_status():
    clean = CertificateAnalysis.model_validate_json(ANALYSIS_JSON)
    mismatched = clean.model_copy(update={
        "validation": clean.validation.model_copy(update={"discrepancies": ["issue date differs"]})
    })

    assert derive_verification_status(clean, _report(0.95)) == VerificationStatus.VERIFIED
    assert derive_verification_status(clean, _report(0.95, "medium")) == VerificationStatus.PENDING
    assert derive_verification_status(mismatched, _report(0.95)) == VerificationStatus.PENDING
    assert derive_verification_status(clean, _report(0.7)) == VerificationStatus.PENDING
    assert derive_verification_status(clean, _report(0.2)) == VerificationStatus.REJECTED
