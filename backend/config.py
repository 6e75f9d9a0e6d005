import os
from pathlib import Path
from dotenv import load_dotenv
from typing import Dict, List

load_dotenv()

class Config:
    # API Keys
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")

    # Model Settings
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    GEMINI_TEMPERATURE: float = float(os.getenv("GEMINI_TEMPERATURE", "0.7"))
    MAX_OUTPUT_TOKENS: int = int(os.getenv("MAX_OUTPUT_TOKENS", "2048"))

    # Storage Settings ("local" or "mongodb")
    STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "local")
    LOCAL_STORAGE_PATH: str = os.getenv("LOCAL_STORAGE_PATH", str(Path.home() / ".math_quest" / "local_storage.json"))
    MONGODB_URI: str = os.getenv("MONGODB_URI", "")
    DATABASE_NAME: str = os.getenv("DATABASE_NAME", "math_quest")
    STORAGE_COLLECTION: str = os.getenv("STORAGE_COLLECTION", "local_storage")

    PROFILE_STORAGE_KEY: str = "mathQuestUserProfile"
    HISTORY_STORAGE_KEY: str = "mathQuestHistory"

    # Analysis Settings
    SUGGESTION_MAX_LENGTH: int = 150

    # Form Settings
    NONE_VALUE: str = "none_value"
    CLASS_OPTIONS: List[str] = [
        "Middle School",
        "High School Freshman",
        "High School Sophomore",
        "High School Junior",
        "High School Senior",
        "College Freshman",
        "College Sophomore",
        "College Junior",
        "College Senior",
        "Graduate Student",
    ]
    EXAM_OPTIONS: List[str] = [
        "Homework",
        "Quiz",
        "Midterm Exam",
        "Final Exam",
        "Standardized Test Prep (SAT/ACT)",
        "Competitive Exam Prep",
        "Professional Certification",
    ]

    # Server Settings
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    @classmethod
    def get_form_options(cls) -> Dict[str, List[Dict[str, str]]]:
        """Choices for the settings form, each optional list led by the "None" sentinel"""

        def with_none(values: List[str]) -> List[Dict[str, str]]:
            return [{"value": cls.NONE_VALUE, "label": "None"}] + [
                {"value": v, "label": v} for v in values
            ]

        return {
            "difficulty": [{"value": d, "label": d.capitalize()} for d in ("easy", "medium", "hard")],
            "type": [
                {"value": t, "label": t.capitalize()}
                for t in ("algebra", "calculus", "geometry", "trigonometry")
            ],
            "student_class": with_none(cls.CLASS_OPTIONS),
            "exam_type": with_none(cls.EXAM_OPTIONS),
        }

    @classmethod
    def validate_config(cls):
        if not cls.GEMINI_API_KEY:
            raise ValueError("GEMINI_API_KEY is required")
        if cls.STORAGE_BACKEND not in ("local", "mongodb"):
            raise ValueError(f"Unknown STORAGE_BACKEND: {cls.STORAGE_BACKEND}")
        if cls.STORAGE_BACKEND == "mongodb" and not cls.MONGODB_URI:
            raise ValueError("MONGODB_URI is required when STORAGE_BACKEND is mongodb")
