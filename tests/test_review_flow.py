from decimal import Decimal

import httpx
import pytest

from conftest import login_as, make_order, make_product
from dokan import models
from dokan.client import ApiError
from dokan.reviews import (
    ImageStager, ReviewDraft, ReviewValidationError, fetch_review_queue, submit_batch, submit_review,
)


class FakeClient:
    def __init__(self, reject=(), bad_files=(), dropped_files=()):
        self.reject = reject
        self.bad_files = bad_files
        self.dropped_files = dropped_files
        self.attempted = []
        self.reviews = []
        self.uploaded = []
        self.deleted = []

    def create_review(self, payload):
        if payload["productId"] in self.reject:
            raise ApiError(409, "You have already reviewed this product")
        self.reviews.append(payload)
        return {"id": f"r{len(self.reviews)}", **payload}

    def upload_review_image(self, filename, content, content_type):
        self.attempted.append(filename)
        if filename in self.dropped_files:
            raise httpx.ConnectError("connection reset")
        if filename in self.bad_files:
            raise ApiError(400, "Only image files (JPEG, JPG, PNG, GIF, WEBP) are allowed")
        path = f"/uploads/reviews/review-u1-{len(self.uploaded)}.png"
        self.uploaded.append(path)
        return {"imagePath": path}

    def delete_review_image(self, path):
        if path not in self.uploaded:
            raise ApiError(404, "Image not found")
        self.deleted.append(path)


PRODUCTS = [{"id": "p1", "vendorId": "v1"}, {"id": "p2", "vendorId": "v1"}, {"id": "p3", "vendorId": "v2"}]


def test_zero_rating_never_reaches_the_server():
    client = FakeClient()
    with pytest.raises(ReviewValidationError, match="between 1 and 5"):
        submit_review(client, ReviewDraft("p1", "v1", rating=0))
    assert client.reviews == []


def test_draft_payload():
    draft = ReviewDraft("p1", "v1", rating=4, comment="  nice  ", images=["/uploads/reviews/a.png"])
    assert draft.to_payload() == {"productId": "p1", "vendorId": "v1", "rating": 4, "comment": "nice",
                                  "images": ["/uploads/reviews/a.png"]}
    assert "comment" not in ReviewDraft("p1", "v1", rating=4, comment="   ").to_payload()
    assert ReviewDraft("p1", "v1", rating=3, comment="x" * 501).problems() == [
        "Comment must be 500 characters or less"]


def test_boolean_rating_is_not_a_star_count():
    assert ReviewDraft("p1", "v1", rating=True).problems() == ["Please select a rating between 1 and 5 stars"]
    assert ReviewDraft("p1", "v1", rating=1).problems() == []


def test_batch_skips_unrated_and_counts_results():
    client = FakeClient(reject=("p3",))
    result = submit_batch(client, PRODUCTS, {"p1": (5, "Great"), "p2": 0, "p3": 2})
    assert [r["productId"] for r in client.reviews] == ["p1"]
    assert client.reviews[0]["comment"] == "Great"
    assert result.success_count == 1
    assert result.error_count == 1
    assert result.errors == [("p3", "You have already reviewed this product")]
    assert result.message == "1 review submitted successfully. 1 review could not be submitted."


def test_batch_with_nothing_rated():
    result = submit_batch(FakeClient(), PRODUCTS, {})
    assert result.success_count == result.error_count == 0
    assert result.message is None


def test_image_failures_do_not_block_the_rest():
    client = FakeClient(bad_files=("b.txt",))
    stager = ImageStager(client)
    added = stager.add_many([("a.png", b"1", "image/png"), ("b.txt", b"2", "text/plain"), ("c.png", b"3", "image/png")])
    assert len(added) == 2
    assert stager.paths == added
    assert stager.failures[0][0] == "b.txt"


def test_network_error_on_one_image_does_not_stop_the_others():
    client = FakeClient(dropped_files=("b.png",))
    stager = ImageStager(client)
    added = stager.add_many([("a.png", b"1", "image/png"), ("b.png", b"2", "image/png"), ("c.png", b"3", "image/png")])
    assert client.attempted == ["a.png", "b.png", "c.png"]
    assert len(added) == 2
    assert stager.failures == [("b.png", "connection reset")]


def test_image_limit():
    stager = ImageStager(FakeClient(), limit=2)
    stager.add_many([(f"{i}.png", b"x", "image/png") for i in range(3)])
    assert len(stager.paths) == 2
    assert stager.failures == [("2.png", "Only 2 images allowed")]
    with pytest.raises(ReviewValidationError):
        stager.add("more.png", b"x", "image/png")


def test_removing_staged_image_deletes_it_on_the_server():
    client = FakeClient()
    stager = ImageStager(client)
    path = stager.add("a.png", b"1", "image/png")
    stager.remove(path)
    assert client.deleted == [path]
    assert stager.paths == []
    # Already gone on the server is fine
    stager.paths.append("/uploads/reviews/review-u1-9.png")
    stager.remove("/uploads/reviews/review-u1-9.png")
    assert stager.paths == []


def test_review_flow_against_the_api(client, db, buyer, vendor, api):
    tea = make_product(db, vendor)
    rice = make_product(db, vendor, name="Rice")
    make_order(db, buyer, vendor, [tea, rice], status="delivered")
    login_as(client, buyer)

    queue = fetch_review_queue(api)
    assert len(queue) == 1
    order, products = queue[0]
    assert {p["name"] for p in products} == {"Tea", "Rice"}

    stager = ImageStager(api)
    stager.add("tea.png", b"\x89PNG\r\n\x1a\n", "image/png")
    draft = ReviewDraft(tea.id, vendor.id, rating=5, comment="Fresh", images=stager.paths)
    created = submit_review(api, draft)
    assert created["images"] == stager.paths

    result = submit_batch(api, products, {tea.id: 3, rice.id: 4})
    assert result.success_count == 1
    assert result.error_count == 1

    assert fetch_review_queue(api) == []
    db.expire_all()
    assert db.get(models.Vendor, vendor.id).rating == Decimal("4.50")
