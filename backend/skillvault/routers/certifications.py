"""
Certifications Router - certification CRUD, certificate files and AI analysis
"""
import asyncio
import logging
from datetime import date, datetime, timezone
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from ..config import get_settings
from ..database import get_db
from ..models import User, Certification, VerificationStatus
from ..schemas.certification import CertificationResponse, CertificationUpdate
from ..services.auth import get_current_user
from ..services.storage import (
    StorageBackend, StorageError, InvalidUpload,
    PDF_CONTENT_TYPE, get_storage, validate_upload
)
from ..services.certificate_analyzer import (
    CertificateAnalyzer, CertificateAnalysisError,
    derive_verification_status, get_certificate_analyzer
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/certifications", tags=["Certifications"])
settings = get_settings()

# Fields the analysis was cross-checked against
ANALYZED_FIELDS = ("title", "issuer", "issue_date", "credential_id")

_background_tasks = set()


# ============================================================================
# Helper Functions
# ============================================================================

def parse_form_date(value: Optional[str], field: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {field}, expected YYYY-MM-DD"
        )


async def get_owned_certification(db: AsyncSession, certification_id: int, user: User) -> Certification:
    certification = await db.get(Certification, certification_id)
    if not certification:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Certification not found"
        )
    if certification.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized"
        )
    return certification


def certificate_user_input(certification: Certification) -> dict:
    """What the user entered, in the shape the model extracts."""
    return {
        "title": certification.title,
        "issuer": certification.issuer,
        "issue_date": certification.issue_date.isoformat() if certification.issue_date else None,
        "credential_id": certification.credential_id,
    }


async def run_certification_analysis(
    certification: Certification,
    storage: StorageBackend,
    analyzer: CertificateAnalyzer
) -> None:
    """
    Analyze the stored certificate file and record the outcome on the certification.

    The caller commits. On failure the error message is recorded and the
    CertificateAnalysisError is re-raised.
    """
    file_bytes = await storage.read(certification.certificate_file)
    file_type = "pdf" if certification.certificate_content_type == PDF_CONTENT_TYPE else "image"

    try:
        analysis = await analyzer.analyze_certificate(
            file_bytes, file_type, certificate_user_input(certification)
        )
        authenticity = await analyzer.validate_certificate_authenticity(analysis)
    except CertificateAnalysisError as e:
        certification.analysis_error = str(e)[:1000]
        certification.analyzed_at = datetime.now(timezone.utc)
        raise

    certification.analysis = analysis.model_dump()
    certification.authenticity = authenticity.model_dump()
    certification.analysis_error = None
    certification.analyzed_at = datetime.now(timezone.utc)
    certification.verification_status = derive_verification_status(
        analysis,
        authenticity,
        reject_below=settings.authenticity_reject_below,
        verify_at=settings.authenticity_verify_at
    )
    logger.info(
        "Certification %s analyzed: status=%s score=%.2f",
        certification.id, certification.verification_status.value, authenticity.authenticity_score
    )


async def analyze_certification_background(certification_id: int):
    """Background analysis after upload, with its own session."""
    from ..database import async_session_maker

    analyzer = get_certificate_analyzer()
    if analyzer is None:
        logger.warning("Skipping analysis of certification %s - Gemini not configured", certification_id)
        return

    async with async_session_maker() as db:
        certification = await db.get(Certification, certification_id)
        if not certification or not certification.certificate_file:
            return
        try:
            await run_certification_analysis(certification, get_storage(), analyzer)
        except (CertificateAnalysisError, StorageError) as e:
            logger.error("Background analysis failed for certification %s: %s", certification_id, e)
        await db.commit()


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/", response_model=List[CertificationResponse])
async def get_certifications(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = await db.execute(
        select(Certification)
        .where(Certification.user_id == current_user.id)
        .order_by(Certification.created_at.desc(), Certification.id.desc())
    )
    return result.scalars().all()


@router.get("/{certification_id}", response_model=CertificationResponse)
async def get_certification(
    certification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await get_owned_certification(db, certification_id, current_user)


@router.post("/", response_model=CertificationResponse, status_code=status.HTTP_201_CREATED)
async def add_certification(
    title: Optional[str] = Form(None),
    issuer: Optional[str] = Form(None),
    issue_date: Optional[str] = Form(None),
    expiry_date: Optional[str] = Form(None),
    credential_id: Optional[str] = Form(None),
    credential_url: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    certificate_file: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage)
):
    """Add a certification, optionally with the certificate file (image or PDF)."""
    title = (title or "").strip()
    issuer = (issuer or "").strip()
    if not title or not issuer or not (issue_date or "").strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please provide title, issuer, and issue date"
        )

    certification = Certification(
        user_id=current_user.id,
        title=title,
        issuer=issuer,
        issue_date=parse_form_date(issue_date, "issue_date"),
        expiry_date=parse_form_date(expiry_date, "expiry_date"),
        credential_id=credential_id or None,
        credential_url=credential_url or None,
        description=description or None,
        verification_status=VerificationStatus.PENDING
    )

    if certificate_file is not None and certificate_file.filename:
        content = await certificate_file.read()
        try:
            validate_upload(certificate_file.content_type, len(content), settings.max_upload_size)
        except InvalidUpload as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        try:
            certification.certificate_file = await storage.save(
                content, certificate_file.filename, certificate_file.content_type, folder="certificates"
            )
        except StorageError as e:
            logger.error("Certificate upload failed for user %s: %s", current_user.id, e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to save certificate file. Please try again."
            )
        certification.certificate_filename = certificate_file.filename[:255]
        certification.certificate_content_type = certificate_file.content_type

    db.add(certification)
    await db.commit()
    logger.info("Created certification %s for user %s", certification.id, current_user.id)

    if settings.auto_analyze_certificates and certification.certificate_file:
        task = asyncio.create_task(analyze_certification_background(certification.id))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    return certification


@router.put("/{certification_id}", response_model=CertificationResponse)
async def update_certification(
    certification_id: int,
    update_data: CertificationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    certification = await get_owned_certification(db, certification_id, current_user)
    update_dict = {
        field: (value.strip() or None) if isinstance(value, str) else value
        for field, value in update_data.model_dump(exclude_unset=True).items()
    }

    for field in ("title", "issuer", "issue_date"):
        if field in update_dict and not update_dict[field]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{field} cannot be empty"
            )

    changed = False
    for field, value in update_dict.items():
        if getattr(certification, field) != value:
            setattr(certification, field, value)
            changed = changed or field in ANALYZED_FIELDS

    # Earlier analysis was against the old metadata
    if changed and certification.analysis is not None:
        certification.verification_status = VerificationStatus.PENDING

    await db.commit()
    return certification


@router.delete("/{certification_id}")
async def delete_certification(
    certification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage)
):
    certification = await get_owned_certification(db, certification_id, current_user)

    if certification.certificate_file:
        try:
            await storage.delete(certification.certificate_file)
        except StorageError as e:
            logger.warning("Could not delete certificate file %s: %s", certification.certificate_file, e)

    await db.delete(certification)
    await db.commit()
    return {"message": "Certification removed"}


@router.get("/{certification_id}/file")
async def get_certification_file(
    certification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage)
):
    certification = await get_owned_certification(db, certification_id, current_user)
    if not certification.certificate_file:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No certificate file uploaded"
        )

    try:
        content = await storage.read(certification.certificate_file)
    except StorageError as e:
        logger.error("Could not read certificate file %s: %s", certification.certificate_file, e)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Certificate file not found in storage"
        )

    filename = certification.certificate_filename or certification.certificate_file.rsplit("/", 1)[-1]
    # Sanitize filename for Content-Disposition header
    safe_filename = filename.replace('"', '\\"').replace('\n', '').replace('\r', '')
    return Response(
        content=content,
        media_type=certification.certificate_content_type or "application/octet-stream",
        headers={
            "Content-Disposition": f'inline; filename="{safe_filename}"',
            "Cache-Control": "private, max-age=3600",
            "X-Content-Type-Options": "nosniff"
        }
    )


@router.post("/{certification_id}/analyze", response_model=CertificationResponse)
async def analyze_certification(
    certification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage),
    analyzer: Optional[CertificateAnalyzer] = Depends(get_certificate_analyzer)
):
    """
    Run the AI analysis on the uploaded certificate.

    Extracts the certificate data, cross-checks it with the entered metadata,
    scores authenticity and updates the verification status.
    """
    certification = await get_owned_certification(db, certification_id, current_user)
    if not certification.certificate_file:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No certificate file uploaded"
        )
    if analyzer is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Certificate analysis is not configured"
        )

    try:
        await run_certification_analysis(certification, storage, analyzer)
    except StorageError as e:
        logger.error("Could not read certificate file %s: %s", certification.certificate_file, e)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Certificate file not found in storage"
        )
    except CertificateAnalysisError as e:
        await db.commit()
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    await db.commit()
    return certification
