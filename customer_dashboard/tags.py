"""
Tag editor for the create-customer form.

Keeps an ordered, deduplicated collection of at most three short tags.
"""

from typing import Iterable, List, Optional

MAX_TAGS = 3


class TagEditor:
    """
    Ordered, size-capped tag collection.

    Matching is exact and case-sensitive: ``"VIP"`` and ``"vip"`` are two
    different tags.

    Attributes:
        max_tags: Maximum number of tags held at once
    """

    def __init__(self, tags: Optional[Iterable[str]] = None, max_tags: int = MAX_TAGS) -> None:
        self.max_tags = max_tags
        self._tags: List[str] = []
        for tag in tags or ():
            self.add_tag(tag)

    @property
    def tags(self) -> List[str]:
        """Current tags in insertion order (a copy)."""
        return list(self._tags)

    @property
    def is_full(self) -> bool:
        return len(self._tags) >= self.max_tags

    def add_tag(self, text: str) -> bool:
        """
        Append a tag.

        Args:
            text: Tag text, surrounding whitespace is trimmed

        Returns:
            True if the tag was added, False if it was empty, a duplicate,
            or the editor is full
        """
        tag = (text or "").strip()
        if not tag or tag in self._tags or self.is_full:
            return False
        self._tags.append(tag)
        return True

    def remove_tag(self, text: str) -> bool:
        """Remove the first exact match of ``text``; return whether one existed."""
        try:
            self._tags.remove(text)
        except ValueError:
            return False
        return True

    def clear(self) -> None:
        self._tags.clear()

    def __len__(self) -> int:
        return len(self._tags)

    def __contains__(self, text: object) -> bool:
        return text in self._tags
