"""End-to-end tests for the site build: HTML output, media copying and the CLI."""

import json
from datetime import datetime, timezone
from pathlib import Path

from markupsafe import Markup
from PIL import Image as PILImage

from twote import Image, Post, Video, convert_media, generate_html, main


def _post(post_id: str, text: str, reply: bool = False, **kwargs) -> Post:
    return Post(
        post_id=post_id,
        reply=reply,
        text=Markup(text),
        time=datetime(2021, 6, 15, 12, 30, tzinfo=timezone.utc),
        **kwargs,
    )


def _tweet(post_id: str, text: str, created_at: str, **extra) -> dict:
    tweet = {"id_str": post_id, "full_text": text, "created_at": created_at}
    tweet.update(extra)
    return {"tweet": tweet}


def _make_export(root: Path) -> Path:
    media_dir = root / "tweets_media"
    media_dir.mkdir(parents=True)
    PILImage.new("RGB", (640, 480), "blue").save(media_dir / "300-photo.jpg")
    (media_dir / "200-b.mp4").write_bytes(b"\x00\x00\x00\x18ftypmp42")

    video_url = "https://video.twimg.com/ext_tw_video/2/pu/vid/{}?tag=12"
    tweets = [
        _tweet(
            "100",
            "Check this: https://t.co/abc123 #neat",
            "Wed Jan 01 00:00:00 +0000 2020",
            entities={
                "urls": [
                    {
                        "indices": ["12", "31"],
                        "expanded_url": "https://example.com/page",
                        "display_url": "example.com/page",
                    }
                ],
                "hashtags": [{"indices": ["32", "37"], "text": "neat"}],
            },
        ),
        _tweet(
            "200",
            "a video https://t.co/vid",
            "Tue Jun 15 12:00:00 +0000 2021",
            entities={"media": [{"indices": ["8", "24"]}]},
            extended_entities={
                "media": [
                    {
                        "type": "video",
                        "media_url": "http://pbs.twimg.com/ext_tw_video_thumb/2/t.jpg",
                        "video_info": {
                            "variants": [
                                {"content_type": "video/mp4", "url": video_url.format("a.mp4")},
                                {"content_type": "video/mp4", "url": video_url.format("b.mp4")},
                            ]
                        },
                    }
                ]
            },
        ),
        _tweet(
            "300",
            "a photo https://t.co/pic",
            "Mon Mar 01 08:00:00 +0000 2021",
            entities={"media": [{"indices": ["8", "24"]}]},
            extended_entities={
                "media": [{"type": "photo", "media_url": "http://pbs.twimg.com/media/photo.jpg"}]
            },
        ),
        _tweet("400", "RT @other: not mine", "Tue Jun 15 13:00:00 +0000 2021"),
    ]
    (root / "tweets.js").write_text(
        f"window.YTD.tweets.part0 = {json.dumps(tweets)}", encoding="utf-8"
    )
    (root / "account.js").write_text(
        'window.YTD.account.part0 = [{"account": {"username": "me"}}]', encoding="utf-8"
    )
    return root


class TestGenerateHtml:
    def test_writes_index(self, tmp_path: Path) -> None:
        posts = [
            _post("1", '<a href="https://example.com">example.com</a>', original="https://x/1"),
            _post("2", "@bob hi", reply=True, media=(Image(name="2-a.jpg"),)),
        ]
        target = generate_html(posts, tmp_path / "out", title="My posts")
        html = target.read_text(encoding="utf-8")

        assert target == tmp_path / "out" / "index.html"
        assert "<title>My posts</title>" in html
        assert '<a href="https://example.com">example.com</a>' in html
        assert '<div class="post reply" id="t2">' in html
        assert '<img src="media/thumb-2-a.jpg"' in html
        assert '<a href="https://x/1">2021-06-15 12:30</a>' in html
        assert '"Inter"' in html

    def test_video_embed(self, tmp_path: Path) -> None:
        posts = [_post("3", "clip", media=(Video(type="video/mp4", name="3-a.mp4"),))]
        html = generate_html(posts, tmp_path).read_text(encoding="utf-8")
        assert '<source src="media/3-a.mp4" type="video/mp4">' in html

    def test_no_posts(self, tmp_path: Path) -> None:
        html = generate_html([], tmp_path).read_text(encoding="utf-8")
        assert "0 posts" in html


class TestConvertMedia:
    def test_copies_and_thumbnails(self, tmp_path: Path) -> None:
        src = tmp_path / "tweets_media"
        src.mkdir()
        PILImage.new("RGB", (600, 400), "red").save(src / "1-big.png")
        PILImage.new("RGB", (100, 50), "red").save(src / "2-small.jpg")
        (src / "3-clip.mp4").write_bytes(b"not really a video")

        out = tmp_path / "site"
        convert_media(src, out)
        media = out / "media"

        assert {p.name for p in media.iterdir()} == {
            "1-big.png",
            "thumb-1-big.png",
            "2-small.jpg",
            "thumb-2-small.jpg",
            "3-clip.mp4",
        }
        with PILImage.open(media / "thumb-1-big.png") as thumb:
            assert thumb.size == (300, 200)
        with PILImage.open(media / "thumb-2-small.jpg") as thumb:
            assert thumb.size == (100, 50)

    def test_broken_image_is_copied_without_thumb(self, tmp_path: Path) -> None:
        src = tmp_path / "tweets_media"
        src.mkdir()
        (src / "1-broken.jpg").write_bytes(b"garbage")

        convert_media(src, tmp_path / "site")
        assert (tmp_path / "site" / "media" / "1-broken.jpg").exists()
        assert not (tmp_path / "site" / "media" / "thumb-1-broken.jpg").exists()

    def test_missing_media_dir(self, tmp_path: Path) -> None:
        convert_media(tmp_path / "nope", tmp_path / "site")
        assert list((tmp_path / "site" / "media").iterdir()) == []


class TestMain:
    def test_full_build(self, tmp_path: Path) -> None:
        root = _make_export(tmp_path / "export")
        out = tmp_path / "site"

        assert main([str(root), str(out), "--media"]) == 0

        html = (out / "index.html").read_text(encoding="utf-8")
        assert html.index('id="t200"') < html.index('id="t300"') < html.index('id="t100"')
        assert 'id="t400"' not in html
        assert (
            'Check this: <a href="https://example.com/page">example.com/page</a> '
            '<span class="hashtag">#neat</span>'
        ) in html
        assert '<source src="media/200-b.mp4" type="video/mp4">' in html
        assert "https://twitter.com/me/status/300" in html
        assert (out / "media" / "thumb-300-photo.jpg").exists()
        assert (out / "media" / "200-b.mp4").exists()

    def test_cutoff_and_missing_video(self, tmp_path: Path) -> None:
        root = _make_export(tmp_path / "export")
        (root / "tweets_media" / "200-b.mp4").unlink()
        out = tmp_path / "site"

        assert main([str(root), str(out), "-c", "2021-01-01", "-u", "someone"]) == 0

        html = (out / "index.html").read_text(encoding="utf-8")
        assert 'id="t300"' in html
        assert 'id="t200"' not in html
        assert 'id="t100"' not in html
        assert "https://twitter.com/someone/status/300" in html
        assert not (out / "media").exists()

    def test_missing_archive(self, tmp_path: Path) -> None:
        assert main([str(tmp_path), str(tmp_path / "site")]) == 1
