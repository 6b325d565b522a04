from .users import router as users_router
from .skills import router as skills_router
from .certifications import router as certifications_router
from .profiles import router as profiles_router

__all__ = [
    "users_router", "skills_router", "certifications_router", "profiles_router"
]
