from .auth import (
    verify_password,
    get_password_hash,
    create_access_token,
    get_current_user,
    authenticate_user,
    oauth2_scheme
)
from .storage import (
    StorageBackend,
    LocalStorage,
    SupabaseStorage,
    StorageError,
    InvalidUpload,
    generate_filename,
    validate_upload,
    get_storage
)
from .certificate_analyzer import (
    CertificateAnalyzer,
    CertificateAnalysis,
    AuthenticityReport,
    CertificateAnalysisError,
    derive_verification_status,
    get_certificate_analyzer
)
from .profile_comparison import (
    analyze_profiles,
    suggest_certifications,
    generate_career_paths
)

__all__ = [
    # Auth
    "verify_password",
    "get_password_hash",
    "create_access_token",
    "get_current_user",
    "authenticate_user",
    "oauth2_scheme",
    # Storage
    "StorageBackend",
    "LocalStorage",
    "SupabaseStorage",
    "StorageError",
    "InvalidUpload",
    "generate_filename",
    "validate_upload",
    "get_storage",
    # Certificate analysis
    "CertificateAnalyzer",
    "CertificateAnalysis",
    "AuthenticityReport",
    "CertificateAnalysisError",
    "derive_verification_status",
    "get_certificate_analyzer",
    # Profile comparison
    "analyze_profiles",
    "suggest_certifications",
    "generate_career_paths"
]
