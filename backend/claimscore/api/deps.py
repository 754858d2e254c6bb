"""
API Dependencies — DB session and scoring configuration.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from claimscore.config import settings
from claimscore.database import async_session
from claimscore.services.scoring_config import ScoringConfig, get_ruleset


# ── Database session ─────────────────────────────────────────────────────────

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session per request, commit on success, rollback on error."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Scoring rule set ─────────────────────────────────────────────────────────

def get_scoring_config() -> ScoringConfig:
    return get_ruleset(settings.scoring_ruleset)
