"""
Profile comparison - overlapping/unique skills and certifications of two users,
plus skill-gap and career-path suggestions from static lookup tables.

Everything here works on plain dicts so the result can be stored as JSON.
"""
from typing import Any, Dict, List, Optional

SKILL_CERTIFICATION_MAP = {
    "JavaScript": ["JavaScript Developer Certification", "Web Development Certification"],
    "Python": ["Python Developer Certification", "Data Science Certification"],
    "Java": ["Java Developer Certification", "Enterprise Development Certification"],
    "SQL": ["Database Administrator Certification", "Data Analysis Certification"],
    "React": ["Frontend Development Certification", "Web Development Certification"],
    "Node.js": ["Backend Development Certification", "Full Stack Development Certification"],
    "AWS": ["AWS Cloud Practitioner", "AWS Solutions Architect"],
    "Machine Learning": ["Machine Learning Certification", "AI Developer Certification"],
    "Data Analysis": ["Data Analyst Certification", "Business Intelligence Certification"],
    "Project Management": ["PMP Certification", "Agile Certification"],
}

CAREER_PATHS = [
    {
        "name": "Full Stack Developer",
        "required_skills": ["JavaScript", "React", "Node.js", "SQL"],
        "suggested_certifications": ["Web Development Certification", "Full Stack Development Certification"],
    },
    {
        "name": "Data Scientist",
        "required_skills": ["Python", "Machine Learning", "Data Analysis", "SQL"],
        "suggested_certifications": ["Data Science Certification", "Machine Learning Certification"],
    },
    {
        "name": "Cloud Engineer",
        "required_skills": ["AWS", "Python", "Linux"],
        "suggested_certifications": ["AWS Cloud Practitioner", "Cloud Architecture Certification"],
    },
    {
        "name": "DevOps Engineer",
        "required_skills": ["Linux", "AWS", "Python", "Node.js"],
        "suggested_certifications": ["DevOps Certification", "Cloud Architecture Certification"],
    },
]

MIN_MATCHING_SKILLS = 2

_CERTIFICATIONS_BY_SKILL = {name.casefold(): certs for name, certs in SKILL_CERTIFICATION_MAP.items()}


def _key(value: Optional[str]) -> str:
    return (value or "").strip().casefold()


def _difference(items: List[Dict[str, Any]], others: List[Dict[str, Any]], field: str) -> List[Dict[str, Any]]:
    other_keys = {_key(other.get(field)) for other in others}
    return [item for item in items if _key(item.get(field)) not in other_keys]


def _intersection(items: List[Dict[str, Any]], others: List[Dict[str, Any]], field: str) -> List[Dict[str, Any]]:
    other_keys = {_key(other.get(field)) for other in others}
    return [item for item in items if _key(item.get(field)) in other_keys]


def find_common_skills(skills1: List[Dict[str, Any]], skills2: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Skills of the first user that the second user also holds."""
    return _intersection(skills1, skills2, "name")


def find_unique_skills(skills1: List[Dict[str, Any]], skills2: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {"user": "user1", "skills": _difference(skills1, skills2, "name")},
        {"user": "user2", "skills": _difference(skills2, skills1, "name")},
    ]


def find_common_certifications(certs1: List[Dict[str, Any]], certs2: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return _intersection(certs1, certs2, "title")


def find_unique_certifications(certs1: List[Dict[str, Any]], certs2: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {"user": "user1", "certifications": _difference(certs1, certs2, "title")},
        {"user": "user2", "certifications": _difference(certs2, certs1, "title")},
    ]


def suggest_certifications(skill: str) -> List[str]:
    suggestions = _CERTIFICATIONS_BY_SKILL.get(_key(skill))
    if suggestions:
        return list(suggestions)
    return [f"{skill} Certification", f"Advanced {skill} Certification"]


def generate_career_paths(
    common_skills: List[Dict[str, Any]],
    common_certs: Optional[List[Dict[str, Any]]] = None
) -> List[Dict[str, Any]]:
    """Career paths with at least two required skills shared by both users."""
    shared = {_key(skill.get("name")) for skill in common_skills}
    paths = []
    for path in CAREER_PATHS:
        matching = [skill for skill in path["required_skills"] if _key(skill) in shared]
        if len(matching) >= MIN_MATCHING_SKILLS:
            paths.append({**path, "matching_skills": matching})
    return paths


def generate_recommendations(
    common_skills: List[Dict[str, Any]],
    unique_skills: List[Dict[str, Any]],
    common_certs: List[Dict[str, Any]],
    unique_certs: List[Dict[str, Any]]
) -> Dict[str, Any]:
    skill_gaps = [
        {
            "user": entry["user"],
            "skills": [
                {
                    "skill": skill["name"],
                    "suggested_certifications": suggest_certifications(skill["name"]),
                }
                for skill in entry["skills"]
            ],
        }
        for entry in unique_skills
    ]

    return {
        "skill_gaps": skill_gaps,
        "career_paths": generate_career_paths(common_skills, common_certs),
    }


def analyze_profiles(user1: Dict[str, Any], user2: Dict[str, Any]) -> Dict[str, Any]:
    """
    Compare two serialized profiles.

    Args:
        user1, user2: dicts with "skills" (each with "name") and
            "certifications" (each with "title")

    Returns:
        JSON-ready analysis with common/unique skills, certification
        comparison and recommendations
    """
    skills1, skills2 = user1.get("skills", []), user2.get("skills", [])
    certs1, certs2 = user1.get("certifications", []), user2.get("certifications", [])

    common_skills = find_common_skills(skills1, skills2)
    unique_skills = find_unique_skills(skills1, skills2)
    common_certs = find_common_certifications(certs1, certs2)
    unique_certs = find_unique_certifications(certs1, certs2)

    return {
        "common_skills": common_skills,
        "unique_skills": unique_skills,
        "certification_comparison": {
            "common": common_certs,
            "unique": unique_certs,
        },
        "recommendations": generate_recommendations(common_skills, unique_skills, common_certs, unique_certs),
    }
