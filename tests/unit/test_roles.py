"""Tests for chatexport.convert.roles — role repair and extraction scoring."""

from chatexport.convert.roles import (
    ScoreWeights,
    correct_roles,
    has_renderable_content,
    is_weak_extraction,
    score_messages,
)
from chatexport.core.models import CanonicalMessage, Role


def _msg(role: Role, html: str) -> CanonicalMessage:
    return CanonicalMessage(role=role, html=html)


class TestCorrectRoles:
    def test_alternates_when_all_same(self):
        messages = [_msg(Role.ASSISTANT, f"<p>{i}</p>") for i in range(3)]
        fixed = correct_roles(messages)
        assert [m.role for m in fixed] == [Role.USER, Role.ASSISTANT, Role.USER]

    def test_meta_skipped_in_alternation(self):
        messages = [
            _msg(Role.META, "<h2>1. A</h2>"),
            _msg(Role.ASSISTANT, "<p>q</p>"),
            _msg(Role.ASSISTANT, "<p>a</p>"),
        ]
        fixed = correct_roles(messages)
        assert [m.role for m in fixed] == [Role.META, Role.USER, Role.ASSISTANT]

    def test_mixed_roles_untouched(self):
        messages = [_msg(Role.USER, "<p>q</p>"), _msg(Role.ASSISTANT, "<p>a</p>")]
        assert correct_roles(messages) == messages

    def test_single_message_untouched(self):
        messages = [_msg(Role.ASSISTANT, "<p>a</p>")]
        assert correct_roles(messages) == messages

    def test_keeps_timestamp(self):
        messages = [
            CanonicalMessage(Role.USER, "<p>q</p>", "2026-01-01T10:00:00"),
            CanonicalMessage(Role.USER, "<p>a</p>"),
        ]
        assert correct_roles(messages)[0].timestamp == "2026-01-01T10:00:00"


class TestHasRenderableContent:
    def test_text(self):
        assert has_renderable_content(_msg(Role.USER, "<p>Real question</p>"))

    def test_role_caption_only(self):
        assert not has_renderable_content(_msg(Role.USER, "<p>User</p>"))
        assert not has_renderable_content(_msg(Role.ASSISTANT, "<div>Asistan</div>"))

    def test_media_without_text(self):
        assert has_renderable_content(_msg(Role.ASSISTANT, '<img src="https://x/a.png">'))

    def test_empty_paragraph_is_not_media(self):
        assert not has_renderable_content(_msg(Role.ASSISTANT, "<p> </p>"))

    def test_meta_never_counts(self):
        assert not has_renderable_content(_msg(Role.META, "<h2>1. Title</h2>"))


class TestScoring:
    def test_empty_is_weak(self):
        assert is_weak_extraction([])

    def test_single_short_message_is_weak(self):
        assert is_weak_extraction([_msg(Role.USER, "<p>hi</p>")])

    def test_long_message_is_not_weak(self):
        assert not is_weak_extraction([_msg(Role.USER, "<p>" + "x" * 100 + "</p>")])

    def test_two_short_messages_are_weak(self):
        messages = [_msg(Role.USER, "<p>hi</p>"), _msg(Role.ASSISTANT, "<p>yo</p>")]
        assert score_messages(messages).total == 44
        assert is_weak_extraction(messages)

    def test_rich_bonus(self):
        score = score_messages([_msg(Role.ASSISTANT, "<pre><code>x</code></pre>")])
        assert score.rich_count == 1
        assert score.total == 1 + 80 + 20

    def test_weights_from_config(self):
        weights = ScoreWeights.from_config({"scoring": {"weak_total": 10, "unknown": 5}})
        assert weights.weak_total == 10
        assert weights.rich_bonus == 80
        assert not is_weak_extraction(
            [_msg(Role.USER, "<p>hi</p>"), _msg(Role.ASSISTANT, "<p>yo</p>")], weights,
        )
