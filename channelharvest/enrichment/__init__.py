"""Record enrichment: logo resolution."""

from channelharvest.enrichment.logos import (
    LogoResolver,
    avatar_url,
    is_valid_image_url,
    synthetic_logo,
)

__all__ = ["LogoResolver", "avatar_url", "is_valid_image_url", "synthetic_logo"]
