"""Viewer policy filtering: who and what a viewer must not be shown."""

from collections.abc import Collection

from ..models import Candidate, ContentFilters, UserProfile, Work, author_of


def mentions_muted_word(work: Work, muted_words: Collection[str]) -> bool:
    """Whether a muted word appears in the work's title, description, tags, fandom or genre."""
    text = " ".join(
        [work.title or "", work.description or "", *work.tags, work.fandom or "", work.genre or ""]
    ).lower()
    return any(word.lower() in text for word in muted_words if word)


def is_filtered_content(work: Work, filters: ContentFilters) -> bool:
    """Whether the work carries a content flag the viewer has not opted in to."""
    return (
        (not filters.mature and (work.is_mature or work.is_nsfw))
        or (not filters.explicit and work.is_explicit)
        or (not filters.violence and work.has_violence)
        or (not filters.self_harm and work.has_self_harm)
        or (not filters.spoilers and work.is_spoiler)
    )


def apply_policy_gates(
    candidates: list[Candidate], viewer: UserProfile | None = None
) -> list[Candidate]:
    """Drop candidates the viewer must not see.

    A candidate is removed when its author is blocked or muted by the
    viewer, or when the item itself is in the viewer's hidden list. Works
    are also removed when they mention one of the viewer's muted words or
    carry a content flag the viewer's content filters exclude. Returns the
    input unchanged when there is no viewer.
    """
    if viewer is None:
        return candidates

    excluded_authors = set(viewer.blocked_users) | set(viewer.muted_users)
    hidden = set(viewer.hidden_posts)

    def allowed(item: Candidate) -> bool:
        if author_of(item) in excluded_authors or item.id in hidden:
            return False
        if isinstance(item, Work):
            if viewer.muted_words and mentions_muted_word(item, viewer.muted_words):
                return False
            if is_filtered_content(item, viewer.content_filters):
                return False
        return True

    return [item for item in candidates if allowed(item)]


def exclude_private_authors(
    works: list[Work],
    private_author_ids: Collection[str],
    followee_ids: Collection[str] = (),
) -> list[Work]:
    """Drop works by private-profile authors the viewer does not follow."""
    hidden = set(private_author_ids) - set(followee_ids)
    if not hidden:
        return works
    return [work for work in works if work.author_id not in hidden]
