"""
Startup configuration validation module.

Catches misconfigurations at startup (fail-fast) rather than at runtime
when a customer tries to book or a staff member completes a service.

Usage:
    from shared.startup_validator import validate_startup_config, StartupValidationError

    try:
        await validate_startup_config()
    except StartupValidationError as e:
        logger.critical(f"Startup blocked: {e}")
        raise
"""

import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import text

from shared.config import get_settings

logger = logging.getLogger(__name__)


class StartupValidationError(Exception):
    """Raised when critical startup validation fails."""

    pass


async def validate_startup_config() -> dict[str, bool]:
    """
    Validate all critical configuration at startup.

    Performs tiered validation:
    - TIER 1 (CRITICAL): Block startup if any fail
    - TIER 2 (IMPORTANT): Warn but allow startup

    Returns:
        dict of {check_name: passed} for all validations

    Raises:
        StartupValidationError: If any CRITICAL check fails
    """
    settings = get_settings()
    results: dict[str, bool] = {}
    critical_failures: list[str] = []

    # =========================================================================
    # TIER 1: CRITICAL (block startup if any fail)
    # =========================================================================

    # 1. Token verification secret
    if not settings.JWT_SECRET:
        critical_failures.append("JWT_SECRET is not set - bearer tokens cannot be verified")
        results["jwt_secret"] = False
    else:
        results["jwt_secret"] = True
        logger.info("  [OK] JWT secret configured")

    # 2. Business time zone must resolve
    try:
        ZoneInfo(settings.TIMEZONE)
        results["timezone"] = True
        logger.info(f"  [OK] Business time zone: {settings.TIMEZONE}")
    except (ZoneInfoNotFoundError, ValueError):
        critical_failures.append(f"TIMEZONE '{settings.TIMEZONE}' is not a valid IANA zone")
        results["timezone"] = False

    # 3. Slot grid must advance
    if settings.SLOT_INTERVAL_MINUTES <= 0 or settings.DEFAULT_SERVICE_DURATION_MINUTES <= 0:
        critical_failures.append(
            "SLOT_INTERVAL_MINUTES and DEFAULT_SERVICE_DURATION_MINUTES must be positive"
        )
        results["slot_settings"] = False
    else:
        results["slot_settings"] = True

    # 4. PostgreSQL reachable
    try:
        from database.connection import get_async_session

        async with get_async_session() as session:
            await session.execute(text("SELECT 1"))
        results["postgres"] = True
        logger.info("  [OK] Database connection successful")
    except Exception as e:
        critical_failures.append(f"Database connection failed: {e}")
        results["postgres"] = False

    # =========================================================================
    # TIER 2: IMPORTANT (warn but allow startup)
    # =========================================================================

    # 5. Redis reachable (live notifications only; inbox rows are still stored)
    try:
        from shared.redis_client import get_redis_client

        await get_redis_client().ping()
        results["redis"] = True
        logger.info("  [OK] Redis connection successful")
    except Exception as e:
        logger.warning(f"  [WARN] Redis unavailable - live notifications disabled: {e}")
        results["redis"] = False

    # 6. Email provider key (completion codes cannot be emailed without it)
    if settings.RESEND_API_KEY == "re-placeholder":
        logger.warning("  [WARN] RESEND_API_KEY is placeholder - completion emails will fail")
        results["email_api_key"] = False
    else:
        results["email_api_key"] = True
        logger.info("  [OK] Email API key configured")

    # 7. Database URL format validation
    if not settings.DATABASE_URL.startswith("postgresql+asyncpg://"):
        logger.warning("DATABASE_URL should use asyncpg driver: postgresql+asyncpg://...")
        results["database_url_format"] = False
    else:
        results["database_url_format"] = True

    # =========================================================================
    # Summary and result
    # =========================================================================

    passed = sum(1 for v in results.values() if v)
    total = len(results)
    logger.info(f"Startup validation: {passed}/{total} checks passed")

    if critical_failures:
        logger.critical("=" * 60)
        logger.critical("STARTUP BLOCKED - Critical configuration errors:")
        for i, failure in enumerate(critical_failures, 1):
            logger.critical(f"  {i}. {failure}")
        logger.critical("=" * 60)
        raise StartupValidationError(
            f"Critical startup validation failed ({len(critical_failures)} errors): "
            f"{'; '.join(critical_failures)}"
        )

    return results
