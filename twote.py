# /// script
# dependencies = ["pillow", "jinja2", "pydantic"]
# ///
"""
Twote: Build a static page from a Twitter data export.

Usage:
    uv run --script twote.py ARCHIVE_DIR OUTPUT_DIR [--cutoff 2021-01-01] [--media]

Expects the unpacked export (tweets.js plus tweets_media/) in ARCHIVE_DIR.
Writes OUTPUT_DIR/index.html, and with --media also copies the media files
and their thumbnails to OUTPUT_DIR/media/.
"""

from __future__ import annotations

import argparse
import json
import re
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Iterable, Mapping, NamedTuple, Sequence
from urllib.parse import urlsplit

from jinja2 import Environment
from markupsafe import Markup, escape
from PIL import Image as PILImage
from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

_jinja_env = Environment(autoescape=True)
Template = _jinja_env.from_string

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

SITE_TITLE = "Twote"
THUMB_SIZE = 300    # bounding box; smaller images are left alone

ARCHIVE_NAMES = ("tweets.js", "tweet.js", "data/tweets.js", "data/tweet.js")
MEDIA_DIR_NAMES = ("tweets_media", "tweet_media")
ACCOUNT_NAME = "account.js"

PROFILE_URL = "https://twitter.com/{name}"
STATUS_URL = "https://twitter.com/{name}/status/{post_id}"

REPOST_MARKER = "RT "
TWITTER_TIME_FORMAT = "%a %b %d %H:%M:%S %z %Y"
DISPLAY_TIME_FORMAT = "%Y-%m-%d %H:%M"

THUMBNAIL_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif"}
VIDEO_TYPES = {"video", "animated_gif"}

# `window.YTD.tweets.part0 = [...]` -> `[...]`
ASSIGNMENT_PREFIX = re.compile(r"^\s*[\w$.]+\s*=\s*")


class ArchiveError(RuntimeError):
    """Raised when the archive cannot be found, read, or parsed."""


class MediaNotFound(LookupError):
    """Raised when none of a video's variants is present in the media folder."""


# ---------------------------------------------------------------------------
# Archive records
# ---------------------------------------------------------------------------

class Indexed(BaseModel):
    """An entity addressing `[start, end)` of the post's original text."""

    indices: tuple[int, int]

    @field_validator("indices")
    @classmethod
    def _check_order(cls, value: tuple[int, int]) -> tuple[int, int]:
        start, end = value
        if start < 0 or start > end:
            raise ValueError(f"bad entity indices {value}")
        return value

    @property
    def start(self) -> int:
        return self.indices[0]

    @property
    def end(self) -> int:
        return self.indices[1]


class MediaEntity(Indexed):
    pass


class UrlEntity(Indexed):
    expanded_url: str
    display_url: str


class MentionEntity(Indexed):
    screen_name: str


class HashtagEntity(Indexed):
    text: str


class Entities(BaseModel):
    media: list[MediaEntity] = Field(default_factory=list)
    urls: list[UrlEntity] = Field(default_factory=list)
    user_mentions: list[MentionEntity] = Field(default_factory=list)
    hashtags: list[HashtagEntity] = Field(default_factory=list)

    # the export writes `null` or leaves the key out for "no entities"
    @field_validator("*", mode="before")
    @classmethod
    def _absent_list(cls, value: Any) -> Any:
        return [] if value is None else value


class Variant(BaseModel):
    """One encoding of a video; only one per video is kept in the archive."""

    content_type: str
    url: str
    bitrate: int | None = None

    @property
    def fragment(self) -> str:
        return url_basename(self.url)


class VideoInfo(BaseModel):
    variants: list[Variant] = Field(default_factory=list)

    @field_validator("variants", mode="before")
    @classmethod
    def _absent_list(cls, value: Any) -> Any:
        return [] if value is None else value


class ExtendedMedia(BaseModel):
    type: str = "photo"
    media_url: str
    video_info: VideoInfo | None = None

    @property
    def is_video(self) -> bool:
        return self.type in VIDEO_TYPES


class ExtendedEntities(BaseModel):
    media: list[ExtendedMedia] = Field(default_factory=list)

    @field_validator("media", mode="before")
    @classmethod
    def _absent_list(cls, value: Any) -> Any:
        return [] if value is None else value


class RawPost(BaseModel):
    """A single archive entry, validated at the boundary."""

    id: str = Field(validation_alias=AliasChoices("id_str", "id"))
    full_text: str
    created_at: datetime
    entities: Entities = Field(default_factory=Entities)
    extended_entities: ExtendedEntities = Field(default_factory=ExtendedEntities)

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_twitter_time(cls, value: Any) -> Any:
        # "Wed Oct 10 20:19:24 +0000 2018"; anything else is left to pydantic
        if isinstance(value, str):
            try:
                return datetime.strptime(value, TWITTER_TIME_FORMAT)
            except ValueError:
                return value
        return value

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    @field_validator("entities", "extended_entities", mode="before")
    @classmethod
    def _absent_entities(cls, value: Any) -> Any:
        return {} if value is None else value

    @classmethod
    def from_entry(cls, entry: Any) -> RawPost:
        """Validate one element of the archive array (usually `{"tweet": {...}}`)."""
        if isinstance(entry, Mapping) and "tweet" in entry:
            entry = entry["tweet"]
        return cls.model_validate(entry)

    @property
    def is_repost(self) -> bool:
        return self.full_text.startswith(REPOST_MARKER)


def url_basename(url: str) -> str:
    """Last path segment of a URL, without its query string."""
    return PurePosixPath(urlsplit(url).path).name


# ---------------------------------------------------------------------------
# Resolved media and posts
# ---------------------------------------------------------------------------

IMAGE_TEMPLATE = Template(
    '<a href="media/{{ name }}"><img src="media/thumb-{{ name }}" alt="" loading="lazy"></a>'
)

VIDEO_TEMPLATE = Template(
    '<video controls preload="metadata"><source src="media/{{ name }}" type="{{ type }}">'
    "Your browser doesn't support this video format.</video>"
)


@dataclass(frozen=True)
class Image:
    name: str

    def embed(self) -> Markup:
        return Markup(IMAGE_TEMPLATE.render(name=self.name))


@dataclass(frozen=True)
class Video:
    type: str
    name: str

    def embed(self) -> Markup:
        return Markup(VIDEO_TEMPLATE.render(name=self.name, type=self.type))


Media = Image | Video


@dataclass(frozen=True)
class Post:
    """A normalized post, ready for the page template."""

    post_id: str
    reply: bool
    text: Markup
    time: datetime
    media: tuple[Media, ...] = ()
    original: str | None = None

    @property
    def display_time(self) -> str:
        return self.time.strftime(DISPLAY_TIME_FORMAT)


# ---------------------------------------------------------------------------
# Step 1: Locate and load the archive
# ---------------------------------------------------------------------------

def find_archive(root: Path) -> tuple[Path, Path]:
    """Return (archive file, media directory) inside an unpacked export."""
    for name in ARCHIVE_NAMES:
        archive = root / name
        if archive.is_file():
            break
    else:
        raise ArchiveError(f"No tweets archive found under {root}")

    media_dir = archive.parent / MEDIA_DIR_NAMES[0]
    for name in MEDIA_DIR_NAMES:
        if (archive.parent / name).is_dir():
            media_dir = archive.parent / name
            break
    return archive, media_dir


def load_archive(path: Path) -> list[Any]:
    """Strip the JavaScript assignment from an archive file and parse the JSON array."""
    try:
        raw = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise ArchiveError(f"Cannot read {path}: {e}") from e

    try:
        data = json.loads(ASSIGNMENT_PREFIX.sub("", raw, count=1))
    except json.JSONDecodeError as e:
        raise ArchiveError(f"{path} is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise ArchiveError(f"{path} does not contain an array")
    return data


def load_account(archive: Path) -> str | None:
    """Username from the account.js next to the archive, if there is one."""
    path = archive.parent / ACCOUNT_NAME
    if not path.is_file():
        return None
    for entry in load_archive(path):
        account = entry.get("account") if isinstance(entry, Mapping) else None
        if isinstance(account, Mapping) and account.get("username"):
            return str(account["username"])
    return None


# ---------------------------------------------------------------------------
# Step 2: Index media files
# ---------------------------------------------------------------------------

def list_media(media_dir: Path) -> frozenset[str]:
    """Names of all files in the media folder; empty if it doesn't exist."""
    if not media_dir.is_dir():
        return frozenset()
    names = frozenset(f.name for f in media_dir.iterdir() if f.is_file())
    print(f"  Indexed {len(names)} media files")
    return names


# ---------------------------------------------------------------------------
# Step 3: Normalize posts
# ---------------------------------------------------------------------------

class TextSpan(NamedTuple):
    """Replace `text[start:end]` of the original text with `replacement`."""

    start: int
    end: int
    replacement: str


def resolve_entities(entities: Entities) -> list[TextSpan]:
    """Turn every entity of a post into a span replacement, in no particular order."""
    spans = []

    # the trailing media link goes away; the media itself is embedded separately
    for media in entities.media:
        spans.append(TextSpan(media.start, media.end, ""))

    # links point at the real destination rather than the t.co shortener
    for url in entities.urls:
        link = Markup('<a href="{}">{}</a>').format(url.expanded_url, url.display_url)
        spans.append(TextSpan(url.start, url.end, link))

    for user in entities.user_mentions:
        href = PROFILE_URL.format(name=user.screen_name)
        link = Markup('<a href="{}">@{}</a>').format(href, user.screen_name)
        spans.append(TextSpan(user.start, user.end, link))

    for hashtag in entities.hashtags:
        tag = Markup('<span class="hashtag">#{}</span>').format(hashtag.text)
        spans.append(TextSpan(hashtag.start, hashtag.end, tag))

    return spans


def _line_breaks(text: str) -> str:
    return text.replace("\n", "<br/>")


def stitch(text: str, spans: Iterable[TextSpan]) -> Markup:
    """Apply span replacements to `text`, whose indices refer to the original text.

    Spans are applied from the last one back to the first, so a replacement
    never moves the offsets of the spans still waiting to be applied. Newlines
    outside the spans become `<br/>`.
    """
    pieces = []
    tail = len(text)
    for span in sorted(spans, key=lambda s: (s.start, s.end), reverse=True):
        if span.end > tail:
            raise ValueError(f"span {span.start}:{span.end} overlaps or exceeds the text")
        pieces.append(_line_breaks(text[span.end:tail]))
        pieces.append(span.replacement)
        tail = span.start
    pieces.append(_line_breaks(text[:tail]))
    return Markup("".join(reversed(pieces)))


def find_video(post_id: str, variants: Sequence[Variant], media_names: frozenset[str]) -> Video:
    """Pick the one variant of a video that was actually saved in the archive.

    The export lists several encodings of each video but keeps only one of
    them on disk, and the bitrate metadata doesn't say which. So each
    variant's filename is derived the way the export names files, and the
    first one that exists wins.
    """
    for variant in variants:
        name = f"{post_id}-{variant.fragment}"
        if name in media_names:
            return Video(type=variant.content_type, name=name)
    raise MediaNotFound(f"no saved variant for video in post {post_id}")


def resolve_media(
    post_id: str, media: Sequence[ExtendedMedia], media_names: frozenset[str]
) -> tuple[Media, ...]:
    """Resolve every attachment of a post; raises MediaNotFound if any video is missing."""
    resolved: list[Media] = []
    for m in media:
        if m.is_video:
            variants = m.video_info.variants if m.video_info else []
            resolved.append(find_video(post_id, variants, media_names))
        else:
            # images are always in the export under this name
            resolved.append(Image(name=f"{post_id}-{url_basename(m.media_url)}"))
    return tuple(resolved)


def normalize_post(
    raw: RawPost, media_names: frozenset[str], screen_name: str | None = None
) -> Post | None:
    """Build the display record for one post, or None if it is skipped.

    Reposts are skipped, and so is any post with a video that isn't in the
    media folder (rather than showing it without its video).
    """
    if raw.is_repost:
        return None

    try:
        media = resolve_media(raw.id, raw.extended_entities.media, media_names)
    except MediaNotFound:
        return None

    original = None
    if screen_name:
        original = STATUS_URL.format(name=screen_name, post_id=raw.id)

    return Post(
        post_id=raw.id,
        reply=raw.full_text.startswith("@"),
        text=stitch(raw.full_text, resolve_entities(raw.entities)),
        time=raw.created_at,
        media=media,
        original=original,
    )


def parse_cutoff(value: str) -> datetime:
    """Parse a --cutoff date or datetime; times without a zone are UTC."""
    cutoff = datetime.fromisoformat(value)
    return cutoff if cutoff.tzinfo else cutoff.replace(tzinfo=timezone.utc)


def load_posts(
    entries: Iterable[Any],
    media_names: frozenset[str],
    cutoff: datetime | None = None,
    screen_name: str | None = None,
) -> list[Post]:
    """Normalize all archive entries into posts, newest first."""
    posts = []
    reposts = malformed = missing = 0

    for entry in entries:
        try:
            raw = RawPost.from_entry(entry)
            post = normalize_post(raw, media_names, screen_name)
        except ValueError as e:
            # ValidationError or a bad span; only this post is affected
            malformed += 1
            reason = str(e).partition("\n")[0]
            print(f"  Skipping malformed post: {reason}")
            continue

        if post is not None:
            posts.append(post)
        elif raw.is_repost:
            reposts += 1
        else:
            missing += 1
            print(f"  MISSING video for {raw.id}, skipping post")

    posts.sort(key=lambda p: p.time, reverse=True)

    if cutoff is not None:
        posts = [p for p in posts if not p.time < cutoff]

    print(
        f"  Loaded {len(posts)} posts "
        f"({reposts} reposts, {missing} missing media, {malformed} malformed skipped)"
    )
    return posts


# ---------------------------------------------------------------------------
# Step 4: Copy media and generate thumbnails
# ---------------------------------------------------------------------------

def make_thumbnail(src: Path, dst: Path):
    """Shrink an image to fit in a THUMB_SIZE box, keeping its aspect ratio."""
    with PILImage.open(src) as img:
        img.thumbnail((THUMB_SIZE, THUMB_SIZE), PILImage.LANCZOS)
        img.save(dst)


def convert_media(media_dir: Path, output: Path):
    """Copy every media file to output/media/ and make thumbnails for the images."""
    dest = output / "media"
    dest.mkdir(parents=True, exist_ok=True)
    if not media_dir.is_dir():
        print(f"  {media_dir} does not exist, nothing to copy")
        return

    files = sorted(f for f in media_dir.iterdir() if f.is_file())
    for i, src in enumerate(files):
        copied = dest / src.name
        if not copied.exists():
            shutil.copy2(src, copied)

        # videos are embedded directly, only images get thumbnails
        thumb = dest / f"thumb-{src.name}"
        if src.suffix.lower() in THUMBNAIL_EXTENSIONS and not thumb.exists():
            try:
                make_thumbnail(src, thumb)
            except OSError as e:
                print(f"  [{i+1}/{len(files)}] Thumb failed for {src.name}: {e}")

        if (i + 1) % 100 == 0 or i + 1 == len(files):
            print(f"  [{i+1}/{len(files)}] processed")


# ---------------------------------------------------------------------------
# Step 5: Generate HTML
# ---------------------------------------------------------------------------

SHARED_CSS = """\
*, *::before, *::after { box-sizing: border-box; }
body {
  margin: 0 auto; padding: 24px; max-width: 680px;
  font-family: "Inter", "SF Pro Text", system-ui, -apple-system, sans-serif;
  font-size: 15px; line-height: 1.6;
  background: #0e0e0e; color: #c8c8c8;
  -webkit-font-smoothing: antialiased;
}
a { color: #7db8e0; text-decoration: none; transition: color 0.15s; }
a:hover { color: #aed4f0; }
h1 { font-size: 1.5em; font-weight: 500; letter-spacing: -0.01em; margin: 0 0 4px; }
.subtitle { font-size: 0.88em; color: #777; margin-bottom: 24px; line-height: 1.5; }
.subtitle label { cursor: pointer; }

.post { padding: 14px 0; border-bottom: 1px solid #1a1a1a; }
.post .text { overflow-wrap: anywhere; }
.post .media { display: flex; flex-wrap: wrap; gap: 4px; margin-top: 10px; }
.post .media img { max-width: 300px; max-height: 300px; border-radius: 3px; display: block; }
.post .media video { max-width: 100%; max-height: 60vh; border-radius: 3px; }
.post .date { color: #555; font-size: 0.82em; margin-top: 6px; }
.post .date a { color: #666; }
.post .date a:hover { color: #999; }
.hashtag { color: #9a9ad0; }
body:has(#show-replies:not(:checked)) .post.reply { display: none; }

@media (max-width: 640px) {
  body { padding: 14px; }
  h1 { font-size: 1.3em; }
  .post .media img { max-width: 100%; }
}
"""

INDEX_TEMPLATE = Template("""\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{{ title }}</title>
<style>
{{ css }}
</style>
</head>
<body>
<h1>{{ title }}</h1>
<p class="subtitle">{{ posts|length }} posts{% if posts %}, {{ posts[-1].time.year }}&ndash;{{ posts[0].time.year }}{% endif %}
&middot; <label><input type="checkbox" id="show-replies" checked> show replies</label></p>
{% for post in posts %}
<div class="post{% if post.reply %} reply{% endif %}" id="t{{ post.post_id }}">
  <div class="text">{{ post.text }}</div>
  {% if post.media %}<div class="media">{% for m in post.media %}{{ m.embed() }}{% endfor %}</div>{% endif %}
  <div class="date">{% if post.original %}<a href="{{ post.original }}">{{ post.display_time }}</a>{% else %}{{ post.display_time }}{% endif %}</div>
</div>
{% endfor %}
</body>
</html>
""")


def generate_html(posts: list[Post], output: Path, title: str = SITE_TITLE) -> Path:
    """Write output/index.html listing every post."""
    output.mkdir(parents=True, exist_ok=True)
    target = output / "index.html"
    target.write_text(
        INDEX_TEMPLATE.render(posts=posts, title=title, css=Markup(SHARED_CSS)),
        encoding="utf-8",
    )
    print(f"  Wrote {target} ({len(posts)} posts)")
    return target


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="twote",
        description="Build a static page from a Twitter data export.",
    )
    parser.add_argument("root_path", type=Path, help="Unpacked export directory.")
    parser.add_argument("destination", type=Path, help="Directory to write the site to.")
    parser.add_argument(
        "-c", "--cutoff",
        type=parse_cutoff,
        help="Leave out posts older than this ISO date, e.g. 2021-01-01.",
    )
    parser.add_argument(
        "-m", "--media",
        action="store_true",
        help="Also copy media files and generate thumbnails.",
    )
    parser.add_argument(
        "-u", "--user",
        help="Screen name for links back to the original posts (default: from account.js).",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        print("Step 1: Loading archive...")
        archive, media_dir = find_archive(args.root_path)
        entries = load_archive(archive)
        screen_name = args.user or load_account(archive)
        print(f"  Loaded {len(entries)} entries from {archive}")
    except ArchiveError as e:
        print(f"Error: {e}")
        return 1

    print("Step 2: Indexing media files...")
    media_names = list_media(media_dir)

    print("Step 3: Normalizing posts...")
    posts = load_posts(entries, media_names, cutoff=args.cutoff, screen_name=screen_name)

    print("Step 4: Generating HTML...")
    generate_html(posts, args.destination)

    if args.media:
        # on demand only, so template tweaks don't churn through thumbnails
        print("Step 5: Copying media and generating thumbnails...")
        convert_media(media_dir, args.destination)

    print(f"\nDone! Site written to {args.destination}/")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
