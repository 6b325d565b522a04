"""
Certificate Analyzer Service using Gemini for data extraction and cross-checking.

PDF certificates are reduced to text (or rendered to an image when they carry no
text layer), image certificates are normalized to PNG, and the model is asked for
a strict JSON object which is then extracted, parsed and shape-checked.
"""
import io
import re
import json
import asyncio
import logging
from typing import Any, Callable, Dict, List, Literal, Optional

import fitz  # PyMuPDF
from PIL import Image, UnidentifiedImageError
from google import genai
from google.genai import types
from pydantic import BaseModel, Field, field_validator

from ..config import get_settings
from ..models.certification import VerificationStatus

logger = logging.getLogger(__name__)

settings = get_settings()

MAX_IMAGE_SIZE = (1024, 1024)
FILE_TYPES = ("pdf", "image")

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)

JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class CertificateAnalysisError(Exception):
    """Raised when a certificate cannot be analyzed"""


# Lazy initialization of Gemini client
_genai_client = None


def get_genai_client():
    """Get the Gemini client, or None when no API key is configured."""
    global _genai_client
    if _genai_client is None:
        if not settings.gemini_api_key:
            logger.warning("GEMINI_API_KEY not set - certificate analysis disabled")
            return None
        _genai_client = genai.Client(api_key=settings.gemini_api_key)
        logger.info("Gemini client initialized")
    return _genai_client


# ============================================================================
# Pydantic Schemas for Validated Output
# ============================================================================

def _string_list(value):
    """Models sometimes answer null or non-string items for list fields."""
    if value is None:
        return []
    if not isinstance(value, list):
        value = [value]
    return [item if isinstance(item, str) else json.dumps(item) for item in value if item is not None]


class ExtractedInfo(BaseModel):
    title: Optional[str] = None
    issuer: Optional[str] = None
    issue_date: Optional[str] = None  # YYYY-MM-DD
    credential_id: Optional[str] = None

    @field_validator("title", "issuer", "issue_date", "credential_id", mode="before")
    @classmethod
    def coerce_strings(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)


class ValidationResult(BaseModel):
    matches: List[str] = Field(default_factory=list)
    discrepancies: List[str] = Field(default_factory=list)

    @field_validator("matches", "discrepancies", mode="before")
    @classmethod
    def coerce_lists(cls, value):
        return _string_list(value)


class CertificateAnalysis(BaseModel):
    extracted_info: ExtractedInfo
    validation: ValidationResult
    suggested_skills: List[str] = Field(default_factory=list)
    category: Optional[str] = None

    @field_validator("suggested_skills", mode="before")
    @classmethod
    def coerce_lists(cls, value):
        return _string_list(value)


class AuthenticityReport(BaseModel):
    authenticity_score: float = Field(ge=0, le=1)
    confidence_level: Literal["high", "medium", "low"]
    flags: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)

    @field_validator("flags", "recommendations", mode="before")
    @classmethod
    def coerce_lists(cls, value):
        return _string_list(value)

    @field_validator("confidence_level", mode="before")
    @classmethod
    def normalize_confidence(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


# ============================================================================
# Prompts
# ============================================================================

ANALYSIS_PROMPT = """You are a certificate analyzer AI. Your task is to analyze the provided certificate and return ONLY a JSON object with the specified structure. Do not include any additional text or explanations.

IMPORTANT: Your response must be a valid JSON object with exactly this structure:
{
  "extracted_info": {
    "title": "exact certificate title",
    "issuer": "issuing organization name",
    "issue_date": "YYYY-MM-DD",
    "credential_id": "ID if present, or null"
  },
  "validation": {
    "matches": ["exact matches with user input"],
    "discrepancies": ["any differences found"]
  },
  "suggested_skills": ["skill1", "skill2", "skill3"],
  "category": "most appropriate category"
}

Remember:
- Return ONLY the JSON object
- Include ALL required fields
- Use null for missing values
- Format dates as YYYY-MM-DD
- Ensure arrays are never null (use empty array if none)

User provided information for comparison:
"""

AUTHENTICITY_PROMPT = """You are a certificate validator AI. Return ONLY a JSON object with the specified structure. Do not include any additional text.

IMPORTANT: Your response must be a valid JSON object with exactly this structure:
{
  "authenticity_score": 0.95,
  "confidence_level": "high",
  "flags": [],
  "recommendations": []
}

Rules:
- authenticity_score must be a number between 0 and 1
- confidence_level must be exactly "high", "medium", or "low"
- flags and recommendations must be arrays (use empty array if none)
- Return ONLY the JSON object, no other text

Analysis to evaluate:
"""


def build_analysis_prompt(user_input: Dict[str, Any]) -> str:
    return ANALYSIS_PROMPT + json.dumps(user_input, indent=2, default=str) + "\n"


def build_authenticity_prompt(analysis: Dict[str, Any]) -> str:
    return AUTHENTICITY_PROMPT + json.dumps(analysis, indent=2, default=str)


# ============================================================================
# File preparation
# ============================================================================

def extract_text_from_pdf(pdf_bytes: bytes) -> str:
    """Extract the text layer of every page using PyMuPDF."""
    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as pdf_document:
            return "\n".join(page.get_text() for page in pdf_document)
    except (RuntimeError, ValueError) as e:
        raise CertificateAnalysisError(f"Failed to extract text from PDF: {e}") from e


def pdf_first_page_image(pdf_bytes: bytes, dpi: int = 150) -> bytes:
    """Render the first PDF page to PNG, for scanned certificates without text."""
    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as pdf_document:
            if len(pdf_document) == 0:
                raise CertificateAnalysisError("PDF has no pages")
            zoom = dpi / 72.0
            pix = pdf_document[0].get_pixmap(matrix=fitz.Matrix(zoom, zoom))
            return pix.tobytes("png")
    except (RuntimeError, ValueError) as e:
        raise CertificateAnalysisError(f"Failed to render PDF page: {e}") from e


def process_image_for_ai(image_bytes: bytes) -> bytes:
    """Fit the image inside 1024x1024 (aspect kept, no upscaling) and encode as PNG."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img.load()
            if img.mode not in ("L", "LA", "P", "RGB", "RGBA"):
                img = img.convert("RGB")
            img.thumbnail(MAX_IMAGE_SIZE)
            output = io.BytesIO()
            img.save(output, format="PNG")
            return output.getvalue()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise CertificateAnalysisError(f"Failed to process image: {e}") from e


# ============================================================================
# Response parsing
# ============================================================================

def extract_json_object(response_text: str) -> Dict[str, Any]:
    """Pull the outermost {...} span out of free text and parse it."""
    match = JSON_OBJECT_RE.search(response_text or "")
    if not match:
        raise ValueError("No valid JSON found in response")
    data = json.loads(match.group(0))
    if not isinstance(data, dict):
        raise ValueError("Response JSON is not an object")
    return data


def validate_analysis_shape(data: Dict[str, Any]) -> CertificateAnalysis:
    if not data.get("extracted_info") or not data.get("validation") or "suggested_skills" not in data:
        raise ValueError("AI returned invalid response structure")
    return CertificateAnalysis.model_validate(data)


def derive_verification_status(
    analysis: CertificateAnalysis,
    authenticity: AuthenticityReport,
    reject_below: float = 0.5,
    verify_at: float = 0.8
) -> VerificationStatus:
    if authenticity.authenticity_score < reject_below:
        return VerificationStatus.REJECTED
    if (
        not analysis.validation.discrepancies
        and authenticity.confidence_level == "high"
        and authenticity.authenticity_score >= verify_at
    ):
        return VerificationStatus.VERIFIED
    return VerificationStatus.PENDING


# ============================================================================
# Analyzer
# ============================================================================

class CertificateAnalyzer:
    def __init__(self, client, text_model: str, vision_model: str, max_attempts: int = 2):
        self.client = client
        self.text_model = text_model
        self.vision_model = vision_model
        self.max_attempts = max(1, max_attempts)

    def _config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            temperature=0.1,
            safety_settings=[
                types.SafetySetting(category=category, threshold="BLOCK_MEDIUM_AND_ABOVE")
                for category in SAFETY_CATEGORIES
            ],
        )

    async def _generate(self, model: str, contents: list) -> str:
        response = await asyncio.to_thread(
            self.client.models.generate_content,
            model=model,
            contents=contents,
            config=self._config(),
        )
        text = response.text
        if not text:
            raise ValueError("Empty response from model")
        return text

    async def get_valid_json_response(self, model: str, contents: list, validator: Callable[[Dict[str, Any]], Any]):
        """Call the model until it yields JSON the validator accepts, up to max_attempts."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                logger.info("Attempt %d to get valid JSON response from %s", attempt, model)
                response_text = await self._generate(model, contents)
                logger.debug("Raw response: %s", response_text)
                return validator(extract_json_object(response_text))
            except Exception as e:
                logger.warning("Attempt %d failed: %s", attempt, e)
                if attempt == self.max_attempts:
                    raise

    async def analyze_certificate(
        self,
        file_bytes: bytes,
        file_type: str,
        user_input: Dict[str, Any]
    ) -> CertificateAnalysis:
        """
        Extract certificate data and compare it with what the user entered.

        Args:
            file_bytes: Raw uploaded file
            file_type: "pdf" or "image"
            user_input: Metadata the user typed in (title, issuer, ...)

        Returns:
            Validated CertificateAnalysis
        """
        try:
            if not file_bytes:
                raise CertificateAnalysisError("No file buffer provided")
            if not file_type:
                raise CertificateAnalysisError("File type not specified")
            if file_type not in FILE_TYPES:
                raise CertificateAnalysisError(f"Invalid file type: {file_type}")

            logger.info("Starting certificate analysis for file type: %s", file_type)
            prompt = build_analysis_prompt(user_input)

            image_bytes = None
            if file_type == "pdf":
                content = await asyncio.to_thread(extract_text_from_pdf, file_bytes)
                if content.strip():
                    logger.info("PDF content extracted, length: %d", len(content))
                    return await self.get_valid_json_response(
                        self.text_model,
                        [prompt + f"\n\nAnalyze this certificate text:\n{content}"],
                        validate_analysis_shape,
                    )
                logger.info("PDF has no text layer, analyzing rendered first page")
                image_bytes = await asyncio.to_thread(pdf_first_page_image, file_bytes)

            processed = await asyncio.to_thread(process_image_for_ai, image_bytes or file_bytes)
            image_part = types.Part.from_bytes(data=processed, mime_type="image/png")
            return await self.get_valid_json_response(
                self.vision_model,
                [prompt, image_part],
                validate_analysis_shape,
            )
        except Exception as e:
            logger.error("Error in analyze_certificate: %s", e)
            raise CertificateAnalysisError(f"Failed to analyze certificate: {e}") from e

    async def validate_certificate_authenticity(self, analysis: CertificateAnalysis) -> AuthenticityReport:
        try:
            logger.info("Starting certificate authenticity validation")
            return await self.get_valid_json_response(
                self.text_model,
                [build_authenticity_prompt(analysis.model_dump())],
                AuthenticityReport.model_validate,
            )
        except Exception as e:
            logger.error("Error in validate_certificate_authenticity: %s", e)
            raise CertificateAnalysisError(f"Failed to validate certificate authenticity: {e}") from e


def get_certificate_analyzer() -> Optional[CertificateAnalyzer]:
    """FastAPI dependency - None when Gemini is not configured."""
    client = get_genai_client()
    if client is None:
        return None
    return CertificateAnalyzer(
        client,
        text_model=settings.gemini_text_model,
        vision_model=settings.gemini_vision_model,
        max_attempts=settings.analysis_max_attempts,
    )
