"""Turn npub / nprofile references in escaped HTML into profile links.

Two passes run over the HTML string:

1. nprofile (pubkey plus relay hints), with or without ``nostr:``.
2. bare npub, with or without ``nostr:``. A match is skipped when the
   characters right before it show it already sits inside an anchor from
   pass 1 (the profile href prefix or the ``data-mention`` marker), or when
   it repeats the npub of the mention it directly follows.

A reference that fails to decode (bad checksum, truncated) is left as
literal text. These are common in the wild, so nothing is logged.
"""

import html as _html
import re
from collections.abc import Callable

from .config import RenderSettings
from .formatting import inside_anchor
from .models import Profile
from .nip19 import Nip19Error, hex_to_npub, npub_to_hex, nprofile_to_npub

ProfileResolver = Callable[[str], Profile | None]

BECH32_ALPHABET = "023456789acdefghjklmnpqrstuvwxyz"

# nprofile length varies with relay hints; the pubkey TLV alone is 58+ chars
NPROFILE_RE = re.compile(
    rf"(nostr:)?(nprofile1[{BECH32_ALPHABET}]{{58,}})(?=[^{BECH32_ALPHABET}]|$)",
    re.IGNORECASE,
)
# npub1 + 58 data chars = 63 chars exactly
NPUB_RE = re.compile(
    rf"(nostr:)?(npub1[{BECH32_ALPHABET}]{{58}})(?=[^{BECH32_ALPHABET}]|$)",
    re.IGNORECASE,
)

MENTION_MARKER = "data-mention"
LOADING_MARKER = "data-loading"

_DEFAULT_SETTINGS = RenderSettings()


def build_mention_html(
    npub: str,
    username: str,
    picture: str | None = None,
    loading: bool = False,
    settings: RenderSettings = _DEFAULT_SETTINGS,
) -> str:
    avatar = _html.escape(picture or settings.default_avatar)
    attrs = f"{MENTION_MARKER} {LOADING_MARKER}" if loading else MENTION_MARKER
    return (
        f'<a href="{settings.profile_path}{npub}" {attrs} class="mention-link mention-link--bg">'
        f'<img class="profile-pic profile-pic--mini" src="{avatar}" alt="" />'
        f"{_html.escape(username)}</a>"
    )


def _mention_for(npub: str, resolver: ProfileResolver, settings: RenderSettings) -> str:
    profile = resolver(npub_to_hex(npub))
    if profile is not None and profile.username:
        return build_mention_html(npub, profile.username, profile.picture, settings=settings)
    return build_mention_html(npub, settings.loading_label, loading=True, settings=settings)


def _repeats_previous_mention(html: str, offset: int, npub: str, settings: RenderSettings) -> bool:
    before = html[:offset].rstrip()
    if not before.endswith("</a>"):
        return False
    opened = before.rfind("<a ")
    return before.startswith(f'<a href="{settings.profile_path}{npub}" {MENTION_MARKER}', opened)


def resolve_mentions(
    html: str,
    resolver: ProfileResolver,
    settings: RenderSettings = _DEFAULT_SETTINGS,
) -> str:
    """Replace every decodable npub/nprofile reference with a mention anchor."""

    def _replace_nprofile(match: re.Match) -> str:
        if inside_anchor(match.string, match.start()):
            return match.group(0)
        try:
            npub = nprofile_to_npub(match.group(2))
            return _mention_for(npub, resolver, settings)
        except Nip19Error:
            return match.group(0)

    html = NPROFILE_RE.sub(_replace_nprofile, html)

    def _replace_npub(match: re.Match) -> str:
        offset = match.start()
        source = match.string
        before = source[max(0, offset - settings.mention_lookback):offset]
        if f'href="{settings.profile_path}' in before or MENTION_MARKER in before:
            return match.group(0)
        if inside_anchor(source, offset):
            return match.group(0)

        npub = match.group(2).lower()
        if _repeats_previous_mention(source, offset, npub, settings):
            return match.group(0)
        try:
            return _mention_for(npub, resolver, settings)
        except Nip19Error:
            return match.group(0)

    return NPUB_RE.sub(_replace_npub, html)


def render_mention(
    npub: str,
    resolver: ProfileResolver,
    settings: RenderSettings = _DEFAULT_SETTINGS,
) -> str:
    """Single npub to a mention anchor; the npub itself if it does not decode."""
    try:
        return _mention_for(npub, resolver, settings)
    except Nip19Error:
        return _html.escape(npub)


def mention_label(npub: str, resolver: ProfileResolver) -> str:
    """Plain-text label for an npub: cached username, else the full npub."""
    try:
        profile = resolver(npub_to_hex(npub))
    except Nip19Error:
        return npub
    if profile is not None and profile.username:
        return profile.username
    return npub


def profile_href(pubkey: str, settings: RenderSettings = _DEFAULT_SETTINGS) -> str:
    """href used by mention anchors for a hex pubkey."""
    return f"{settings.profile_path}{hex_to_npub(pubkey)}"
