from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    OPENAI_ORG: str | None = None

    LLM_MODEL: str = "gpt-4o-mini"
    # Per call-site overrides; None falls back to LLM_MODEL
    INTENT_CLASSIFICATION_MODEL: str | None = None
    INTENT_VALIDATION_MODEL: str | None = None
    INTERPRETATION_MODEL: str | None = None
    SPECIFICITY_CHECK_MODEL: str | None = None
    CONTRACT_SELECTION_MODEL: str | None = None
    # Transport controls for every LLM call
    LLM_TIMEOUT_SECONDS: float = Field(20.0, gt=0)
    LLM_MAX_RETRIES: int = Field(1, ge=0, le=1)
    TEMPERATURE: float = 0.0
    INTERPRETATION_TEMPERATURE: float = 0.3
    MAX_OUTPUT_TOKENS: int = 500

    # Pattern results at/above this confidence skip validation
    PATTERN_TRUST_TAU: float = Field(0.90, ge=0.0, le=1.0)
    # Below this a deterministic result is sent to the LLM for validation
    LOW_CONFIDENCE_TAU: float = Field(0.88, ge=0.0, le=1.0)
    # Interpretation confidence required before the proposed intent is used
    INTERPRETATION_TAU: float = Field(0.60, ge=0.0, le=1.0)
    # Partial answers are only shown above this confidence
    PARTIAL_ANSWER_TAU: float = Field(0.50, ge=0.0, le=1.0)
    # Above this the clarify message closes with a short "Let me know!"
    CLARIFY_CONFIDENT_TAU: float = Field(0.80, ge=0.0, le=1.0)
    MAX_ALTERNATIVES: int = Field(3, ge=0)

    # What to do when nothing deterministic matched: interpret | classify
    FALLBACK_MODE: Literal["interpret", "classify"] = "interpret"
    # Consult the follow-up detector before falling back to the LLM
    FOLLOW_UP_FAST_PATH: bool = False

    PRODUCT_NAME: str = "PitCrew"
    ENTITY_CACHE_TTL_SECONDS: float = Field(300.0, ge=0.0)
    FALLBACK_COMPANIES: list[str] = [
        "Les Schwab",
        "ACE Hardware",
        "Jiffy Lube",
        "Discount Tire",
        "Valvoline",
        "Walmart",
        "Fullspeed",
        "Canadian Tire",
    ]
    KNOWN_CONTACTS: list[str] = [
        "tyler wiggins",
        "randy hentschke",
        "robert colongo",
        "will sovern",
        "eric conn",
    ]

    # Aggregate questions over more meetings than this need a time range
    AGGREGATE_MEETING_THRESHOLD: int = Field(100, ge=0)

    TELEMETRY_ENABLED: bool = False

    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    log_dir: str = "logs"
    log_level: str = "INFO"
    LOG_TO_FILE: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = False

    def model_for(self, call_site: str) -> str:
        """Resolve the model for an LLM call site, e.g. ``"interpretation"``."""
        override = getattr(self, f"{call_site.upper()}_MODEL", None)
        return override or self.LLM_MODEL


settings = Settings()
