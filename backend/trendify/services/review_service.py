"""
Review Service
Customer product reviews and their moderation

Reviews are hidden until a moderator approves them. Each customer keeps one
review per product; submitting again edits it and sends it back to moderation.
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import case, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from trendify.core.database import utcnow
from trendify.core.errors import NotFoundError
from trendify.domain.review import ReviewCreate, ReviewModeration
from trendify.models import Order, OrderItem, Review, User
from trendify.repositories import ProductRepository
from trendify.services.audit_service import record_audit

logger = logging.getLogger(__name__)

# Orders that count as a purchase for the verified badge
PURCHASED_PAYMENT_STATUSES = ("paid", "partially_refunded", "refunded")

MODERATION_ACTIONS = {
    "approve": "REVIEW_APPROVED",
    "reject": "REVIEW_REJECTED",
    "delete": "REVIEW_DELETED",
}


class ReviewService:
    """Service for review business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.products = ProductRepository(db)

    def _visible(self, product_id: int):
        return (
            Review.product_id == product_id,
            Review.is_approved.is_(True),
            Review.deleted_at.is_(None),
        )

    # ------------------------------------------------------------------
    # Storefront
    # ------------------------------------------------------------------

    def list_product_reviews(self, product_id: int, page: int = 1, limit: int = 10) -> Tuple[List[Review], int]:
        """Approved reviews of a product, newest first"""
        conditions = self._visible(product_id)
        total = self.db.scalar(select(func.count(Review.id)).where(*conditions))
        stmt = (
            select(Review)
            .options(selectinload(Review.user))
            .where(*conditions)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(self.db.scalars(stmt)), total

    def rating_summary(self, product_id: int) -> dict:
        rows = self.db.execute(
            select(Review.rating, func.count(Review.id))
            .where(*self._visible(product_id))
            .group_by(Review.rating)
        ).all()
        breakdown = {stars: 0 for stars in range(1, 6)}
        for rating, count in rows:
            breakdown[rating] = count
        count = sum(breakdown.values())
        average = round(sum(stars * n for stars, n in breakdown.items()) / count, 2) if count else None
        return {"count": count, "average": average, "breakdown": breakdown}

    def my_review(self, user: User, product_id: int) -> Optional[Review]:
        """The caller's review of a product, approved or not"""
        stmt = select(Review).where(
            Review.user_id == user.id,
            Review.product_id == product_id,
            Review.deleted_at.is_(None),
        )
        return self.db.scalars(stmt).first()

    def has_purchased(self, user: User, product_id: int) -> bool:
        stmt = (
            select(OrderItem.id)
            .join(Order, OrderItem.order_id == Order.id)
            .where(
                Order.user_id == user.id,
                OrderItem.product_id == product_id,
                Order.payment_status.in_(PURCHASED_PAYMENT_STATUSES),
            )
            .limit(1)
        )
        return self.db.scalar(stmt) is not None

    def submit_review(self, user: User, data: ReviewCreate) -> Tuple[Review, bool]:
        """
        Create or edit the caller's review of a product

        Returns:
            (review, created)

        Raises:
            NotFoundError: Unknown or deleted product
        """
        product = self.products.find_by_id(data.product_id)
        if product is None or not product.is_active:
            raise NotFoundError("Product", data.product_id)

        values = {
            "rating": data.rating,
            "title": data.title,
            "comment": data.comment,
            "images": [str(url) for url in data.images],
            "is_verified": self.has_purchased(user, product.id),
            "is_approved": False,
            "deleted_at": None,
        }

        lookup = select(Review).where(Review.user_id == user.id, Review.product_id == product.id)
        review = self.db.scalars(lookup).first()
        created = review is None
        if created:
            review = Review(user_id=user.id, product_id=product.id, **values)
            self.db.add(review)
            try:
                self.db.flush()
            except IntegrityError:
                # Submitted concurrently by the same customer; edit that row instead
                self.db.rollback()
                created = False
                review = self.db.scalars(lookup).one()

        if not created:
            for field, value in values.items():
                setattr(review, field, value)
            self.db.flush()

        record_audit(
            self.db, "REVIEW_SUBMITTED", "review", review.id,
            new_value={"product_id": product.id, "rating": data.rating, "is_verified": values["is_verified"]},
            user=user,
        )
        self.db.commit()
        self.db.refresh(review)
        logger.info(f"Review {review.id} {'created' if created else 'updated'} for product {product.id}")
        return review, created

    # ------------------------------------------------------------------
    # Moderation
    # ------------------------------------------------------------------

    def list_reviews(self, status: Optional[str] = None, search: Optional[str] = None,
                     page: int = 1, limit: int = 20) -> Tuple[List[Review], int, dict]:
        """
        Non-deleted reviews for moderation

        Args:
            status: 'pending' (not approved) or 'approved'
            search: Matches comment, title or the author's e-mail

        Returns:
            (reviews, total matching, stats over all non-deleted reviews)
        """
        conditions = [Review.deleted_at.is_(None)]
        if status == "pending":
            conditions.append(Review.is_approved.is_(False))
        elif status == "approved":
            conditions.append(Review.is_approved.is_(True))
        if search:
            term = f"%{search.strip()}%"
            conditions.append(or_(
                Review.comment.ilike(term),
                Review.title.ilike(term),
                User.email.ilike(term),
            ))

        base = select(Review).join(User, Review.user_id == User.id).where(*conditions)
        total = self.db.scalar(select(func.count()).select_from(base.subquery()))
        stmt = (
            base.options(selectinload(Review.user))
            .order_by(Review.created_at.desc(), Review.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )

        approved, all_reviews = self.db.execute(
            select(
                func.coalesce(func.sum(case((Review.is_approved.is_(True), 1), else_=0)), 0),
                func.count(Review.id),
            ).where(Review.deleted_at.is_(None))
        ).one()
        stats = {"pending": all_reviews - approved, "approved": approved, "total": all_reviews}
        return list(self.db.scalars(stmt)), total, stats

    def get_review(self, review_id: int) -> Review:
        review = self.db.get(Review, review_id)
        if review is None or review.deleted_at is not None:
            raise NotFoundError("Review", review_id)
        return review

    def moderate(self, review_id: int, moderation: ReviewModeration, actor: Optional[User] = None) -> Review:
        """
        approve / reject (hide) / delete (soft) a review

        Raises:
            NotFoundError: Unknown or already deleted review
        """
        review = self.get_review(review_id)
        old = {"is_approved": review.is_approved}

        if moderation.action == "delete":
            review.deleted_at = utcnow()
        else:
            review.is_approved = moderation.action == "approve"
        if moderation.admin_notes:
            review.admin_notes = moderation.admin_notes

        record_audit(
            self.db, MODERATION_ACTIONS[moderation.action], "review", review.id,
            old_value=old,
            new_value={"is_approved": review.is_approved, "notes": moderation.admin_notes},
            user=actor,
        )
        self.db.commit()
        self.db.refresh(review)
        logger.info(f"Review {review.id}: {moderation.action}")
        return review
