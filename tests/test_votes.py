import pytest
from sqlmodel import select

from app.core.errors import Conflict, NotFound, Unauthenticated, ValidationFailed
from app.models import ReviewStatus, ReviewVote
from app.services.review import ReviewService
from app.services.votes import VoteService


def _votes(session, review):
    return session.exec(select(ReviewVote).where(ReviewVote.review_id == review.id)).all()


class TestCastVote:
    def test_first_vote_counts(self, session, product, make_review, user, other_user):
        review = make_review(product, user)

        vote, helpful_count = VoteService(session).cast_vote(review.id, other_user, True)

        assert vote.is_helpful is True
        assert helpful_count == 1
        session.refresh(review)
        assert review.helpful_count == 1

    def test_flipping_a_vote_updates_in_place(self, session, product, make_review, user, other_user):
        review = make_review(product, user)
        service = VoteService(session)

        service.cast_vote(review.id, other_user, True)
        vote, helpful_count = service.cast_vote(review.id, other_user, False)

        assert helpful_count == 0
        assert vote.is_helpful is False
        assert len(_votes(session, review)) == 1

    def test_repeat_vote_is_a_no_op(self, session, product, make_review, user, other_user):
        review = make_review(product, user)
        service = VoteService(session)

        service.cast_vote(review.id, other_user, True)
        _, helpful_count = service.cast_vote(review.id, other_user, True)

        assert helpful_count == 1
        assert len(_votes(session, review)) == 1

    def test_count_tracks_many_voters(self, session, product, make_review, make_user, user):
        review = make_review(product, user)
        service = VoteService(session)
        voters = [make_user(f"voter{i}@example.com") for i in range(4)]

        for voter, helpful in zip(voters, [True, True, False, True]):
            service.cast_vote(review.id, voter, helpful)
        _, helpful_count = service.cast_vote(review.id, voters[0], False)

        assert helpful_count == 2
        session.refresh(review)
        assert review.helpful_count == 2

    def test_recompute_is_idempotent(self, session, product, make_review, user, other_user):
        review = make_review(product, user)
        service = VoteService(session)
        service.cast_vote(review.id, other_user, True)

        assert service.recompute_helpful_count(review.id) == 1
        assert service.recompute_helpful_count(review.id) == 1


    def test_racing_first_vote_conflicts_and_rolls_back(self, session, product, make_review, user, other_user, monkeypatch):
        review = make_review(product, user)
        service = VoteService(session)
        service.cast_vote(review.id, other_user, True)
        # A concurrent request whose lookup ran before the first vote landed
        monkeypatch.setattr(service, "get_vote", lambda review_id, voter: None)

        with pytest.raises(Conflict):
            service.cast_vote(review.id, other_user, False)

        session.refresh(review)
        assert review.helpful_count == 1
        assert [vote.is_helpful for vote in _votes(session, review)] == [True]


class TestVoteGuards:
    def test_anonymous_vote_is_rejected(self, session, product, make_review, user):
        review = make_review(product, user)
        with pytest.raises(Unauthenticated):
            VoteService(session).cast_vote(review.id, None, True)

    def test_non_boolean_is_rejected(self, session, product, make_review, user, other_user):
        review = make_review(product, user)
        with pytest.raises(ValidationFailed):
            VoteService(session).cast_vote(review.id, other_user, 1)

    def test_pending_review_is_not_votable(self, session, product, make_review, user, other_user):
        review = make_review(product, user, status=ReviewStatus.PENDING)
        with pytest.raises(NotFound):
            VoteService(session).cast_vote(review.id, other_user, True)
        assert _votes(session, review) == []

    def test_deleted_review_is_not_votable(self, session, product, make_review, user, other_user):
        review = make_review(product, user)
        ReviewService(session).delete(review.id, user)
        with pytest.raises(NotFound):
            VoteService(session).cast_vote(review.id, other_user, True)

    def test_missing_review(self, session, other_user):
        with pytest.raises(NotFound):
            VoteService(session).cast_vote(4242, other_user, True)


def test_get_vote_returns_callers_vote_only(session, product, make_review, user, other_user, admin):
    review = make_review(product, user)
    service = VoteService(session)
    service.cast_vote(review.id, other_user, False)

    assert service.get_vote(review.id, other_user).is_helpful is False
    assert service.get_vote(review.id, admin) is None
