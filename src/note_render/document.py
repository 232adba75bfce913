"""Mounted HTML fragments that late profile resolutions patch in place.

Processed HTML is parsed with lxml into a container ``div`` per note. Mention
anchors are located by href, the same way a browser client would query its
DOM. Unmounting a note just drops its tree; a later patch then finds nothing.
"""

import itertools

import lxml.html
from lxml.html import HtmlElement

from .config import RenderSettings
from .mentions import LOADING_MARKER, MENTION_MARKER

BLINK_ID_ATTR = "data-blink-id"


class MentionElement:
    """A mounted mention anchor: ``<a ...><img src=...>label</a>``."""

    def __init__(self, anchor: HtmlElement):
        self.anchor = anchor

    def __eq__(self, other: object) -> bool:
        return isinstance(other, MentionElement) and other.anchor is self.anchor

    def __hash__(self) -> int:
        return id(self.anchor)

    def __repr__(self) -> str:
        return f"MentionElement(href={self.href!r}, label={self.label!r})"

    @property
    def href(self) -> str:
        return self.anchor.get("href", "")

    @property
    def npub(self) -> str:
        return self.href.rsplit("/", 1)[-1]

    @property
    def avatar(self) -> HtmlElement | None:
        images = self.anchor.findall("img")
        return images[0] if images else None

    @property
    def avatar_src(self) -> str:
        img = self.avatar
        return img.get("src", "") if img is not None else ""

    @avatar_src.setter
    def avatar_src(self, value: str) -> None:
        img = self.avatar
        if img is not None:
            img.set("src", value)

    @property
    def label(self) -> str:
        img = self.avatar
        if img is not None:
            return img.tail or ""
        return self.anchor.text or ""

    @label.setter
    def label(self, value: str) -> None:
        img = self.avatar
        if img is not None:
            img.tail = value
        else:
            self.anchor.text = value

    @property
    def loading(self) -> bool:
        return LOADING_MARKER in self.anchor.attrib

    def mark_loaded(self) -> None:
        if LOADING_MARKER in self.anchor.attrib:
            del self.anchor.attrib[LOADING_MARKER]

    def get_attr(self, name: str) -> str | None:
        return self.anchor.get(name)

    def set_attr(self, name: str, value: str) -> None:
        self.anchor.set(name, value)

    def set_opacity(self, part: str, value: float) -> None:
        """Fade the avatar image or the anchor holding the name text."""
        target = self.avatar if part == "avatar" else self.anchor
        if target is None:
            return
        target.set("style", f"opacity: {value:g}; transition: opacity 0.3s ease")


class Document:
    """The set of currently mounted note fragments."""

    def __init__(self, settings: RenderSettings | None = None):
        self.settings = settings or RenderSettings()
        self._roots: dict[str, HtmlElement] = {}
        self._keys = itertools.count(1)

    def mount(self, html: str, key: str | None = None) -> HtmlElement:
        key = key or f"note-{next(self._keys)}"
        root = lxml.html.fragment_fromstring(html, create_parent="div")
        root.set("data-note-key", key)
        self._roots[key] = root
        return root

    def unmount(self, key: str) -> None:
        self._roots.pop(key, None)

    @property
    def keys(self) -> list[str]:
        return list(self._roots)

    def find_mentions(self, npub: str, loading_only: bool = False) -> list[MentionElement]:
        href = f"{self.settings.profile_path}{npub}"
        found: list[MentionElement] = []
        for root in self._roots.values():
            for anchor in root.iter("a"):
                if anchor.get("href") != href or MENTION_MARKER not in anchor.attrib:
                    continue
                if loading_only and LOADING_MARKER not in anchor.attrib:
                    continue
                found.append(MentionElement(anchor))
        return found

    def to_html(self, key: str | None = None) -> str:
        """Serialize one mounted note (inner HTML), or all of them."""
        roots = [self._roots[key]] if key is not None else list(self._roots.values())
        return "".join(_inner_html(root) for root in roots)


def _inner_html(root: HtmlElement) -> str:
    html = lxml.html.tostring(root, encoding="unicode")
    # drop the container <div ...> and </div>
    return html[html.index(">") + 1:-len("</div>")]
