"""Data models for processed note content and profile data."""

from collections.abc import Sequence
from dataclasses import dataclass, field

# NIP-01 tag list: [["p", "<hex>", "<relay>"], ["t", "nostr"], ...]
TagList = Sequence[Sequence[str]]


@dataclass
class MediaItem:
    type: str  # "image" or "video"
    url: str  # exact substring matched in the note text
    thumbnail: str | None = None  # only for video hosts


@dataclass
class LinkPreview:
    url: str
    domain: str


@dataclass
class QuotedReference:
    type: str  # "event", "note", "addr"
    id: str  # full reference, used as lookup key by the quote renderer
    full_match: str


@dataclass(frozen=True)
class ProcessedContent:
    """Snapshot returned by the pipeline. Never mutated after creation."""

    text: str
    html: str
    media: list[MediaItem] = field(default_factory=list)
    links: list[LinkPreview] = field(default_factory=list)
    hashtags: list[str] = field(default_factory=list)
    quoted_references: list[QuotedReference] = field(default_factory=list)


@dataclass
class Profile:
    pubkey: str  # hex
    name: str | None = None
    display_name: str | None = None
    picture: str = ""
    about: str | None = None
    pending: bool = False

    @classmethod
    def fallback(cls, pubkey: str) -> "Profile":
        """Placeholder handed out while the real profile is being fetched."""
        return cls(pubkey=pubkey, pending=True)

    @classmethod
    def from_metadata(cls, pubkey: str, metadata: dict) -> "Profile":
        """Build a resolved profile from kind-0 metadata.

        Relays serve whatever clients published, so non-string values are
        dropped rather than trusted.
        """

        def _str(key: str) -> str | None:
            value = metadata.get(key)
            return value if isinstance(value, str) else None

        return cls(
            pubkey=pubkey,
            name=_str("name"),
            display_name=_str("display_name"),
            picture=_str("picture") or "",
            about=_str("about"),
        )

    @property
    def username(self) -> str | None:
        """Text shown inside a mention: name first, then display_name.

        Headings use ``extract_display_name``, which prefers ``display_name``.
        """
        return self.name or self.display_name or None

    @property
    def is_resolved(self) -> bool:
        return not self.pending


@dataclass
class Encounter:
    pubkey: str
    first_name: str
    first_picture_url: str
    first_seen_at: float
    last_known_name: str
    last_known_picture_url: str
    last_changed_at: float


def extract_display_name(profile: Profile) -> str:
    """Pick the name for headings: display_name > name > "".

    The reverse of ``Profile.username``, which labels mentions.
    """
    if profile.display_name and profile.display_name.strip():
        return profile.display_name.strip()
    if profile.name and profile.name.strip():
        return profile.name.strip()
    return ""
