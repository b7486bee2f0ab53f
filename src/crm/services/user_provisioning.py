"""User provisioning service.

Creates an account and seeds its default pipeline, which is the whole
onboarding flow for a new CRM user. Used by the register endpoint and by
scripts/create_user.py.
"""

from __future__ import annotations

import structlog

from src.crm.core.security import hash_password
from src.crm.deals.pipeline import PipelineService
from src.crm.errors import EmailTakenError
from src.crm.schemas.auth import UserInDB
from src.crm.services.users import UserRepository

logger = structlog.get_logger(__name__)


async def provision_user(
    users: UserRepository,
    pipeline: PipelineService,
    email: str,
    password: str,
    full_name: str = "",
) -> UserInDB:
    """Create a user with the default pipeline stages.

    Steps:
    1. Refuse a duplicate email
    2. Hash the password and insert the profile
    3. Seed Lead / Qualified / Proposal / Negotiation / Won / Lost

    Raises:
        EmailTakenError: If an account with this email exists.
    """
    if await users.get_by_email(email) is not None:
        raise EmailTakenError(email)

    user = await users.create(email, hash_password(password), full_name=full_name)
    stages = await pipeline.seed_default_pipeline(user.id)
    logger.info("users.provisioned", user_id=user.id, stage_count=len(stages))
    return user
