"""Tests for the HTML page builders."""

from api.rendering import (
    PLACEHOLDER_IMAGE,
    render_admin_list_page,
    render_edit_page,
    render_error_page,
    render_gallery_page,
    render_home_page,
    render_viewer_page,
)

VIDEO_URL = "https://test-bucket.s3.amazonaws.com/videos/abc.mp4"


def _video(**overrides):
    video = {
        "id": "abc1234567",
        "filename": "videos/abc.mp4",
        "description": "A video",
        "preview_title": None,
        "preview_image": None,
        "visit_counter_script": None,
    }
    for i in range(1, 6):
        video[f"banner_script_{i}"] = None
    video.update(overrides)
    return video


def _related(n):
    return [{"id": f"rel{i:07d}", "description": f"Related {i}", "preview_image": None} for i in range(n)]


class TestViewerPage:
    def test_player_source(self):
        html = render_viewer_page(_video(), VIDEO_URL, [])
        assert '<video controls id="videoPlayer">' in html
        assert f'<source src="{VIDEO_URL}" type="video/mp4">' in html

    def test_preview_tags_default_title(self):
        html = render_viewer_page(_video(), VIDEO_URL, [])
        assert '<meta property="og:title" content="Video">' in html
        assert '<meta property="og:image" content="">' in html

    def test_preview_tags_escaped(self):
        html = render_viewer_page(
            _video(preview_title='"><script>x()</script>', preview_image="https://img/a.jpg?a=1&b=2"),
            VIDEO_URL,
            [],
        )
        assert "<script>x()</script>" not in html
        assert 'content="&quot;&gt;&lt;script&gt;x()&lt;/script&gt;"' in html
        assert 'content="https://img/a.jpg?a=1&amp;b=2"' in html

    def test_description_escaped(self):
        html = render_viewer_page(_video(description="<b>bold</b>"), VIDEO_URL, [])
        assert "&lt;b&gt;bold&lt;/b&gt;" in html

    def test_banners_verbatim_and_placed(self):
        banners = {f"banner_script_{i}": f"<script>b{i}()</script>" for i in range(1, 6)}
        html = render_viewer_page(_video(**banners), VIDEO_URL, [])
        positions = [html.index(f"<script>b{i}()</script>") for i in range(1, 6)]
        player = html.index("<video")
        assert positions == sorted(positions)
        assert positions[2] < player < positions[3]

    def test_visit_counter_before_head(self):
        html = render_viewer_page(_video(visit_counter_script="<script>count()</script>"), VIDEO_URL, [])
        assert html.index("<script>count()</script>") < html.index("<head>")

    def test_related_rows(self):
        html = render_viewer_page(_video(), VIDEO_URL, _related(3))
        assert html.count('class="related-videos"') == 2
        assert html.count('class="related-video"') == 3
        assert html.count(PLACEHOLDER_IMAGE) == 3

    def test_no_related_rows_when_empty(self):
        html = render_viewer_page(_video(), VIDEO_URL, [])
        assert 'class="related-videos"' not in html
        assert "Suggested videos" in html


class TestOtherPages:
    def test_home_form_fields(self):
        html = render_home_page()
        for name in ("video", "description", "redirectUrl", "facebookRedirectUrl", "previewTitle", "previewImage",
                     "bannerScript1", "bannerScript5", "visitCounterScript", "useAntibot", "useCloaking",
                     "usePreview", "useVisitCounter"):
            assert f'name="{name}"' in html

    def test_gallery_items(self):
        html = render_gallery_page([_video(preview_image="https://img/1.jpg"), _video(id="other00001")])
        assert html.count('class="video-item"') == 2
        assert 'href="/video/abc1234567"' in html
        assert "https://img/1.jpg" in html
        assert PLACEHOLDER_IMAGE in html

    def test_admin_list(self):
        html = render_admin_list_page([_video(description="<i>x</i>")])
        assert "ID: abc1234567" in html
        assert "File: videos/abc.mp4" in html
        assert "Description: &lt;i&gt;x&lt;/i&gt;" in html
        assert "confirm(" in html

    def test_edit_page_prefills_escaped_description(self):
        html = render_edit_page(_video(description='say "hi"'))
        assert 'value="say &quot;hi&quot;"' in html
        assert 'action="/admin/videos/abc1234567/edit"' in html

    def test_error_page_escapes_message(self):
        html = render_error_page(404, "<nope>")
        assert "<h1>404</h1>" in html
        assert "&lt;nope&gt;" in html
