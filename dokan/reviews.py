"""Client-side review workflow: draft checks, image staging, single and batch submission."""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from dokan.client import ApiError

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 500
MAX_IMAGES = 5


class ReviewValidationError(ValueError):
    def __init__(self, errors):
        super().__init__("; ".join(errors))
        self.errors = errors


@dataclass
class ReviewDraft:
    product_id: str
    vendor_id: str
    rating: int = 0  # 0 means no star picked yet
    comment: str = ""
    images: List[str] = field(default_factory=list)

    def problems(self):
        errors = []
        if isinstance(self.rating, bool) or not isinstance(self.rating, int) or not 1 <= self.rating <= 5:
            errors.append("Please select a rating between 1 and 5 stars")
        if len(self.comment or "") > MAX_COMMENT_LENGTH:
            errors.append(f"Comment must be {MAX_COMMENT_LENGTH} characters or less")
        if len(self.images) > MAX_IMAGES:
            errors.append(f"You can attach at most {MAX_IMAGES} images")
        return errors

    def validate(self):
        errors = self.problems()
        if errors:
            raise ReviewValidationError(errors)
        return self

    def to_payload(self):
        payload = {"productId": self.product_id, "vendorId": self.vendor_id, "rating": self.rating,
                   "images": list(self.images)}
        if self.comment and self.comment.strip():
            payload["comment"] = self.comment.strip()
        return payload


class ImageStager:
    """Uploads review photos one by one and keeps the server paths of those that made it."""

    def __init__(self, client, limit=MAX_IMAGES):
        self.client = client
        self.limit = limit
        self.paths = []
        self.failures = []  # (filename, message)

    def add(self, filename, content, content_type):
        if len(self.paths) >= self.limit:
            raise ReviewValidationError([f"You can attach at most {self.limit} images"])
        try:
            uploaded = self.client.upload_review_image(filename, content, content_type)
        except ApiError as exc:
            logger.warning("Review image %s rejected: %s", filename, exc.message)
            self.failures.append((filename, exc.message))
            return None
        except httpx.HTTPError as exc:
            logger.warning("Review image %s failed: %s", filename, exc)
            self.failures.append((filename, str(exc) or "Network error"))
            return None
        self.paths.append(uploaded["imagePath"])
        return uploaded["imagePath"]

    def add_many(self, files):
        """files: iterable of (filename, content, content_type); stops quietly at the limit."""
        added = []
        for filename, content, content_type in files:
            if len(self.paths) >= self.limit:
                self.failures.append((filename, f"Only {self.limit} images allowed"))
                continue
            path = self.add(filename, content, content_type)
            if path:
                added.append(path)
        return added

    def remove(self, path):
        if path.startswith("/uploads/"):
            try:
                self.client.delete_review_image(path)
            except ApiError as exc:
                if exc.status_code != 404:
                    raise
        if path in self.paths:
            self.paths.remove(path)


def submit_review(client, draft):
    draft.validate()
    return client.create_review(draft.to_payload())


def fetch_review_queue(client):
    """Delivered orders that still have products waiting for a review, as (order, products)."""
    return [(entry["order"], entry["products"]) for entry in client.unreviewed_orders()]


@dataclass
class BatchResult:
    success_count: int = 0
    error_count: int = 0
    errors: List[tuple] = field(default_factory=list)  # (product_id, message)
    reviews: List[dict] = field(default_factory=list)

    @property
    def message(self) -> Optional[str]:
        parts = []
        if self.success_count:
            parts.append(f"{self.success_count} review{'s' if self.success_count > 1 else ''} submitted successfully.")
        if self.error_count:
            parts.append(f"{self.error_count} review{'s' if self.error_count > 1 else ''} could not be submitted.")
        return " ".join(parts) or None


def submit_batch(client, products, ratings):
    """Submit the rated products in order.

    ratings maps product id to a star count or to a (stars, comment) pair; products left
    at 0 stars are skipped.
    """
    result = BatchResult()
    for product in products:
        entry = ratings.get(product["id"])
        rating, comment = entry if isinstance(entry, tuple) else (entry or 0, "")
        if not rating or rating <= 0:
            continue
        draft = ReviewDraft(product["id"], product["vendorId"], rating=rating, comment=comment or "")
        try:
            result.reviews.append(submit_review(client, draft))
            result.success_count += 1
        except (ApiError, ReviewValidationError) as exc:
            message = exc.message if isinstance(exc, ApiError) else str(exc)
            logger.warning("Review for product %s failed: %s", product["id"], message)
            result.error_count += 1
            result.errors.append((product["id"], message))
        except httpx.HTTPError as exc:
            logger.warning("Review for product %s failed: %s", product["id"], exc)
            result.error_count += 1
            result.errors.append((product["id"], str(exc) or "Network error"))
    return result
