"""Onboarding repository - Database operations for communities and their Stripe accounts"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Community


class CommunityRepository:
    """Repository for community database operations"""

    @staticmethod
    def get_by_slug(db: Session, slug: str) -> Optional[Community]:
        return db.query(Community).filter(Community.slug == slug).first()

    @staticmethod
    def get_by_id(db: Session, community_id: str) -> Optional[Community]:
        return db.query(Community).filter(Community.id == community_id).first()

    @staticmethod
    def get_owned(db: Session, community_id: str, user_id: str) -> Optional[Community]:
        """Get a community only if the user created it"""
        return (
            db.query(Community)
            .filter(Community.id == community_id, Community.created_by == user_id)
            .first()
        )

    @staticmethod
    def set_stripe_account(
        db: Session, community: Community, account_id: Optional[str], onboarding_type: Optional[str] = None
    ) -> Community:
        """Store or clear the community's Stripe account id"""
        community.stripe_account_id = account_id
        if onboarding_type is not None:
            community.stripe_onboarding_type = onboarding_type
        db.commit()
        db.refresh(community)
        return community
