"""Post-extraction heuristics over canonical message lists.

Role correction and extraction scoring are best-effort: they repair
common scraper failure modes, they do not infer roles reliably.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from chatexport.convert.tree import MEDIA_TAGS, parse_clean
from chatexport.core.models import CanonicalMessage, Role

log = logging.getLogger(__name__)

# Fragments that contain nothing but a role caption
_ROLE_ONLY_RE = re.compile(r"^(kullanici|asistan|assistant|user|you|chatgpt)$", re.IGNORECASE)

# Media that makes a message worth keeping even without text
_RICH_TAGS = MEDIA_TAGS - {"p"}


@dataclass(frozen=True)
class ScoreWeights:
    """Weak-extraction thresholds.

    Empirically tuned; they only need to be good enough to trigger a
    fallback extraction pass.
    """

    min_single_text_length: int = 40
    rich_bonus: int = 80
    per_message: int = 20
    weak_total: int = 90

    @classmethod
    def from_config(cls, config: dict) -> ScoreWeights:
        scoring = config.get("scoring", {})
        return cls(**{k: int(v) for k, v in scoring.items() if k in cls.__dataclass_fields__})


@dataclass
class ExtractionScore:
    count: int
    text_length: int
    rich_count: int
    total: int


def _plain_text(html: str) -> tuple[str, bool]:
    """Whitespace-collapsed text of a fragment and whether it has rich media."""
    root = parse_clean(html)
    text = re.sub(r"\s+", " ", root.text_content()).strip()
    rich = root.find(lambda el: el.tag in _RICH_TAGS) is not None
    return text, rich


def has_renderable_content(message: CanonicalMessage) -> bool:
    """True when a non-meta message has text beyond a bare role caption, or media."""
    if message.role == Role.META or not message.html.strip():
        return False
    text, rich = _plain_text(message.html)
    if text and not _ROLE_ONLY_RE.match(text):
        return True
    return rich


def score_messages(messages: list[CanonicalMessage], weights: ScoreWeights | None = None) -> ExtractionScore:
    weights = weights or ScoreWeights()
    text_length = 0
    rich_count = 0
    for message in messages:
        text, rich = _plain_text(message.html)
        text_length += len(text)
        rich_count += int(rich)
    total = text_length + rich_count * weights.rich_bonus + len(messages) * weights.per_message
    return ExtractionScore(len(messages), text_length, rich_count, total)


def is_weak_extraction(messages: list[CanonicalMessage], weights: ScoreWeights | None = None) -> bool:
    """True when an extraction looks too thin to trust."""
    weights = weights or ScoreWeights()
    score = score_messages(messages, weights)
    if not score.count:
        return True
    if (
        score.count == 1
        and score.text_length < weights.min_single_text_length
        and score.rich_count == 0
    ):
        return True
    return score.total < weights.weak_total


def correct_roles(messages: list[CanonicalMessage]) -> list[CanonicalMessage]:
    """Alternate user/assistant roles when every turn collapsed onto one role.

    Applies only when there are at least two non-meta messages and all of
    them carry the same role; the first turn is assumed to be the user's.
    Meta messages are left in place and do not advance the alternation.
    """
    turns = [m for m in messages if m.role != Role.META]
    if len(turns) < 2 or len({m.role for m in turns}) != 1:
        return list(messages)

    log.info("All %d messages share role %r; assigning alternating roles", len(turns), turns[0].role.value)
    out: list[CanonicalMessage] = []
    index = 0
    for message in messages:
        if message.role == Role.META:
            out.append(message)
            continue
        role = Role.USER if index % 2 == 0 else Role.ASSISTANT
        out.append(CanonicalMessage(role=role, html=message.html, timestamp=message.timestamp))
        index += 1
    return out
