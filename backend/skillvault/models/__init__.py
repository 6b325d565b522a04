from .user import User
from .skill import Skill, UserSkill, SkillLevel
from .certification import Certification, VerificationStatus
from .comparison import ProfileComparison

__all__ = [
    "User",
    "Skill", "UserSkill", "SkillLevel",
    "Certification", "VerificationStatus",
    "ProfileComparison",
]
