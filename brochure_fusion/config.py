"""Configuration management for the brochure content fusion engine."""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FUSION_CONFIG = Path(__file__).parent / "fusion.yaml"


def _default_categories() -> dict[str, dict[str, float]]:
    return {
        "overview": {
            "overview": 1.0, "about": 1.0, "introduction": 1.0,
            "summary": 1.0, "description": 1.0,
        },
        "history": {
            "history": 1.0, "historical": 1.0, "ancient": 1.0, "founded": 1.0,
            "established": 1.0, "origin": 1.0, "past": 1.0, "century": 1.0,
            "era": 1.0,
        },
        "attractions": {
            "attraction": 1.0, "sight": 1.0, "landmark": 1.0, "monument": 1.0,
            "museum": 1.0, "park": 1.0, "garden": 1.0, "temple": 1.0,
            "shrine": 1.0, "palace": 1.0, "castle": 1.0,
        },
        "culture": {
            "culture": 1.0, "tradition": 1.0, "custom": 1.0, "festival": 1.0,
            "celebration": 1.0, "art": 1.0, "music": 1.0, "food": 1.0,
            "cuisine": 1.0, "local": 1.0,
        },
        "practical": {
            "transport": 1.0, "accommodation": 1.0, "hotel": 1.0,
            "restaurant": 1.0, "shopping": 1.0, "price": 1.0, "cost": 1.0,
            "ticket": 1.0, "schedule": 1.0, "hour": 1.0, "open": 1.0,
        },
    }


class RankingConfig(BaseModel):
    """Search result scoring weights."""
    content_type_scores: dict[str, float] = Field(default_factory=lambda: {
        "Travel Guide": 5.0,
        "Official Site": 4.0,
        "Blog": 3.0,
        "News Article": 2.0,
        "Other": 1.0,
    })
    term_match_score: float = 1.0
    gov_bonus: float = 3.0
    org_bonus: float = 2.0
    travel_bonus: float = 2.0
    travel_url_terms: list[str] = Field(default_factory=lambda: ["tourism", "travel"])
    # (max age in days, bonus), checked in order
    recency_bonuses: list[tuple[float, float]] = Field(
        default_factory=lambda: [(30.0, 3.0), (180.0, 2.0), (360.0, 1.0)]
    )
    query_templates: list[str] = Field(default_factory=lambda: [
        "{location} travel guide tourism attractions",
        "{location} culture history landmarks",
        "{location} local customs traditions",
    ])


class ImageScoringConfig(BaseModel):
    """Local image relevance scoring terms."""
    alt_bonus: float = 2.0
    alt_in_context_bonus: float = 3.0
    filename_bonus: float = 1.0
    excluded_filename_terms: list[str] = Field(
        default_factory=lambda: ["banner", "logo", "icon", "button"]
    )
    size_penalty: float = 2.0
    min_area: int = 10_000
    max_area: int = 4_000_000


class BucketConfig(BaseModel):
    """Image bucket caps and membership rules."""
    hero: int = 3
    attraction: int = 20
    activity: int = 15
    general: int = 30
    category_confidence: float = 0.6
    hero_min_aspect: float = 1.5
    hero_min_width: int = 1200
    general_categories: list[str] = Field(default_factory=lambda: ["CULTURAL", "FOOD"])

    @field_validator("hero", "attraction", "activity", "general")
    @classmethod
    def validate_cap(cls, v: int) -> int:
        """Bucket caps cannot be negative."""
        if v < 0:
            raise ValueError("Bucket cap must be non-negative")
        return v

    def caps(self) -> dict[str, int]:
        return {
            "hero": self.hero,
            "attraction": self.attraction,
            "activity": self.activity,
            "general": self.general,
        }


class SelectionConfig(BaseModel):
    """Gallery, thumbnail and hero selection thresholds."""
    gallery_count: int = 6
    gallery_min_quality: float = 0.6
    gallery_min_width: int = 800
    thumbnail_count: int = 12
    thumbnail_min_quality: float = 0.5
    thumbnail_min_width: int = 400
    hero_min_quality: float = 0.7


class MergeLimits(BaseModel):
    """Output size limits for the merged location record."""
    attractions: int = 10
    activities: int = 8
    highlights: int = 5
    tips: int = 5
    description_length: int = 500
    feature_score: float = 1.0


class FusionConfig(BaseModel):
    """Categories, thresholds and limits used by the fusion components."""
    categories: dict[str, dict[str, float]] = Field(default_factory=_default_categories)
    attraction_category: str = "attractions"
    overview_category: str = "overview"
    min_paragraph_length: int = 50
    similarity_threshold: float = 0.7
    ranking: RankingConfig = Field(default_factory=RankingConfig)
    image_scoring: ImageScoringConfig = Field(default_factory=ImageScoringConfig)
    buckets: BucketConfig = Field(default_factory=BucketConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    limits: MergeLimits = Field(default_factory=MergeLimits)

    @field_validator("similarity_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        """Validate similarity threshold."""
        if not 0 <= v <= 1:
            raise ValueError("Similarity threshold must be between 0 and 1")
        return v

    @field_validator("categories")
    @classmethod
    def validate_categories(cls, v: dict[str, dict[str, float]]) -> dict[str, dict[str, float]]:
        if not v:
            raise ValueError("At least one content category is required")
        return v


class Settings(BaseSettings):
    """Main application settings."""

    # ── Fusion ─────────────────────────────────────────────────────────────
    fusion_config_path: Path = Field(
        DEFAULT_FUSION_CONFIG, description="YAML file with categories and limits"
    )
    classifier_concurrency: int = Field(8, description="Concurrent image classifications")
    max_sources: int = Field(5, description="Sources picked from ranked search results")

    # ── Logging ────────────────────────────────────────────────────────────
    log_level: str = Field("INFO", description="Log level")
    json_logging: bool = Field(True, description="Enable JSON logging")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("classifier_concurrency", "max_sources")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate counts are positive."""
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if v.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return v.upper()


def load_fusion_config(config_path: str | Path | None = None) -> FusionConfig:
    """Load fusion configuration from a YAML file.

    Args:
        config_path: Path to the YAML file (defaults to the packaged fusion.yaml)

    Returns:
        Validated fusion configuration

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(config_path) if config_path else DEFAULT_FUSION_CONFIG
    if not path.exists():
        raise FileNotFoundError(f"Fusion config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return FusionConfig(**data)


# Global instances
settings = Settings()
fusion_config = load_fusion_config(settings.fusion_config_path)


def get_settings() -> Settings:
    """Get application settings."""
    return settings


def get_fusion_config() -> FusionConfig:
    """Get fusion configuration."""
    return fusion_config
