"""
Tests for the priority classifier and type registries.
"""

from __future__ import annotations

import pytest

from social_notify.services.notifications import (
    ClassificationContext,
    NotificationType,
    Priority,
    PushCategory,
    classify,
    get_push_category,
)


class TestClassify:
    """Tests for classify()."""

    @pytest.mark.parametrize("type_", ["FRIEND_REQUEST", "MESSAGE"])
    def test_high_priority_always_pushes(self, type_):
        result = classify(type_)

        assert result.priority is Priority.HIGH
        assert result.should_send_push is True
        assert result.can_batch is False

    def test_like_from_stranger_no_push(self):
        result = classify(NotificationType.POST_LIKE, ClassificationContext())

        assert result.priority is Priority.MEDIUM
        assert result.should_send_push is False
        assert result.can_batch is True

    def test_like_from_friend_pushes(self):
        result = classify("POST_LIKE", ClassificationContext(sender_is_friend=True))
        assert result.should_send_push is True

    def test_engaged_user_gets_push(self):
        result = classify("COMMENT", ClassificationContext(user_has_high_engagement=True))
        assert result.should_send_push is True

    def test_recent_post_alone_does_not_push(self):
        result = classify("FOLLOW", ClassificationContext(post_is_recent=True))
        assert result.should_send_push is False

    @pytest.mark.parametrize(
        "type_", ["FRIEND_ACCEPTED", "FRIEND_POST", "GENERAL", "COMMENT_LIKE", "POST_MENTION"]
    )
    def test_low_priority_never_pushes(self, type_):
        context = ClassificationContext(sender_is_friend=True, user_has_high_engagement=True)
        result = classify(type_, context)

        assert result.priority is Priority.LOW
        assert result.should_send_push is False
        assert result.can_batch is True

    def test_unknown_type_is_low(self):
        result = classify("SOMETHING_NEW")

        assert result.type == "SOMETHING_NEW"
        assert result.priority is Priority.LOW
        assert result.category is PushCategory.GENERAL

    def test_to_dict(self):
        data = classify("FRIEND_REQUEST").to_dict()

        assert data == {
            "type": "FRIEND_REQUEST",
            "priority": "high",
            "should_send_push": True,
            "can_batch": False,
            "category": "FRIEND_REQUEST",
        }


class TestTypes:
    """Tests for type parsing and push categories."""

    def test_parse_is_case_insensitive(self):
        assert NotificationType.parse("post_like") is NotificationType.POST_LIKE
        assert NotificationType.parse("bogus") is None

    @pytest.mark.parametrize(
        ("type_", "category"),
        [
            ("POST_LIKE", PushCategory.POST_INTERACTION),
            ("COMMENT", PushCategory.POST_INTERACTION),
            ("COMMENT_LIKE", PushCategory.POST_INTERACTION),
            ("FRIEND_REQUEST", PushCategory.FRIEND_REQUEST),
            ("MESSAGE", PushCategory.MESSAGE),
            ("FRIEND_ACCEPTED", PushCategory.GENERAL),
            ("GENERAL", PushCategory.GENERAL),
        ],
    )
    def test_push_categories(self, type_, category):
        assert get_push_category(type_) is category
