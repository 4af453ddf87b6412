"""
HTML pages served by vidhost.

One function per page. Every value interpolated here is passed through
html.escape, with two exceptions: the five banner scripts and the visit
counter script are admin-supplied HTML and are emitted verbatim. Nothing
else in the codebase builds HTML.
"""
from html import escape
from typing import Any, Iterable, Mapping, Optional, Sequence

DEFAULT_TITLE = "Video"
PLACEHOLDER_IMAGE = "https://placehold.it/300x200"

BASE_STYLE = """
        body { font-family: sans-serif; text-align: center; background-color: #f0f8ff; color: #333; padding: 20px; margin: 0; }
        a { color: #1a5fb4; }
        .banner { margin: 10px 0; }
        video { width: 100%; max-width: 800px; margin: 20px 0; }
        .related-videos { display: flex; justify-content: space-between; margin: 20px auto; max-width: 800px; }
        .related-video { width: 45%; max-width: 150px; margin: 10px; }
        .related-video img, .video-item img { width: 100%; }
        .video-container { display: flex; flex-wrap: wrap; justify-content: center; gap: 16px; }
        .video-item, .video-card { width: 300px; background: #fff; border-radius: 6px; padding: 10px; }
        form.upload { display: inline-block; text-align: left; max-width: 640px; }
        form.upload label { display: block; margin-top: 10px; }
        form.upload input[type=text], form.upload textarea { width: 100%; }
        @media (max-width: 600px) {
            .related-videos { flex-direction: column; align-items: center; }
            .related-video { width: 100%; max-width: none; margin: 5px 0; }
        }
"""


def _e(value: Any) -> str:
    """Escape a value for HTML text or a quoted attribute. None renders as ''."""
    if value is None:
        return ""
    return escape(str(value), quote=True)


def _raw(value: Optional[str]) -> str:
    """Trusted admin-supplied HTML fragment, emitted as-is."""
    return value or ""


def _document(title: str, body: str, head_extra: str = "", prelude: str = "") -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
{prelude}<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{_e(title)}</title>
{head_extra}    <style>{BASE_STYLE}    </style>
</head>
<body>
{body}
</body>
</html>
"""


def render_home_page() -> str:
    """Upload form posting multipart data to /upload."""
    banner_inputs = "\n".join(
        f'        <label for="bannerScript{i}">Banner script {i}</label>\n'
        f'        <textarea id="bannerScript{i}" name="bannerScript{i}" rows="2"></textarea>'
        for i in range(1, 6)
    )
    checkboxes = "\n".join(
        f'        <label><input type="checkbox" name="{name}"> {label}</label>'
        for name, label in (
            ("useCloaking", "Use cloaking"),
            ("useAntibot", "Block known bots"),
            ("usePreview", "Use social preview"),
            ("useVisitCounter", "Use visit counter"),
        )
    )
    body = f"""    <h1>Upload a video</h1>
    <form class="upload" action="/upload" method="post" enctype="multipart/form-data">
        <label for="video">Video file</label>
        <input type="file" id="video" name="video" accept="video/*" required>
        <label for="description">Description</label>
        <input type="text" id="description" name="description">
        <label for="redirectUrl">Redirect URL</label>
        <input type="text" id="redirectUrl" name="redirectUrl">
        <label for="facebookRedirectUrl">Facebook redirect URL</label>
        <input type="text" id="facebookRedirectUrl" name="facebookRedirectUrl">
        <label for="previewTitle">Preview title</label>
        <input type="text" id="previewTitle" name="previewTitle">
        <label for="previewImage">Preview image URL</label>
        <input type="text" id="previewImage" name="previewImage">
{banner_inputs}
        <label for="visitCounterScript">Visit counter script</label>
        <textarea id="visitCounterScript" name="visitCounterScript" rows="2"></textarea>
{checkboxes}
        <p><button type="submit">Upload</button></p>
    </form>
    <p><a href="/videos">Browse videos</a></p>"""
    return _document("Upload video", body)


def _related_row(videos: Sequence[Mapping[str, Any]]) -> str:
    items = "\n".join(
        f"""        <div class="related-video">
            <a href="/video/{_e(rv['id'])}">
                <img src="{_e(rv.get('preview_image') or PLACEHOLDER_IMAGE)}" alt="Related video">
            </a>
            <p>{_e(rv['description'])}</p>
        </div>"""
        for rv in videos
    )
    return f'    <div class="related-videos">\n{items}\n    </div>'


def render_viewer_page(
    video: Mapping[str, Any],
    video_url: str,
    related: Sequence[Mapping[str, Any]],
) -> str:
    """
    Viewer page for a single video.

    Layout: visit counter script, social preview tags, banners 1-3, the
    description, the player, suggested videos in two rows of up to two,
    then banners 4-5.
    """
    preview_title = video.get("preview_title") or DEFAULT_TITLE
    preview_image = video.get("preview_image") or ""
    head_extra = (
        f'    <meta property="og:title" content="{_e(preview_title)}">\n'
        f'    <meta property="og:image" content="{_e(preview_image)}">\n'
    )
    top_banners = "\n".join(
        f'    <div class="banner">{_raw(video.get(f"banner_script_{i}"))}</div>' for i in (1, 2, 3)
    )
    bottom_banners = "\n".join(
        f'    <div class="banner">{_raw(video.get(f"banner_script_{i}"))}</div>' for i in (4, 5)
    )
    rows = [list(related[0:2]), list(related[2:4])]
    related_html = "\n".join(_related_row(row) for row in rows if row)

    body = f"""{top_banners}
    <div class="description">{_e(video['description'])}</div>
    <video controls id="videoPlayer">
        <source src="{_e(video_url)}" type="video/mp4">
        Your browser does not support the video tag.
    </video>
    <h2>Suggested videos</h2>
{related_html}
{bottom_banners}"""
    prelude = _raw(video.get("visit_counter_script"))
    if prelude:
        prelude += "\n"
    return _document(DEFAULT_TITLE, body, head_extra=head_extra, prelude=prelude)


def render_gallery_page(videos: Iterable[Mapping[str, Any]]) -> str:
    items = "\n".join(
        f"""        <div class="video-item">
            <a href="/video/{_e(video['id'])}">
                <img src="{_e(video.get('preview_image') or PLACEHOLDER_IMAGE)}" alt="{_e(video['description'] or DEFAULT_TITLE)}">
                <p>{_e(video['description'] or DEFAULT_TITLE)}</p>
            </a>
        </div>"""
        for video in videos
    )
    body = f"""    <h1>Videos</h1>
    <div class="video-container">
{items}
    </div>"""
    return _document("Videos", body)


def render_admin_home_page() -> str:
    body = """    <h1>Admin panel</h1>
    <p>Use the links below to manage videos:</p>
    <ul>
        <li><a href="/admin/videos">View and manage videos</a></li>
    </ul>"""
    return _document("Admin panel", body)


def render_admin_list_page(videos: Iterable[Mapping[str, Any]]) -> str:
    cards = "\n".join(
        f"""        <div class="video-card">
            <p>ID: {_e(video['id'])}</p>
            <p>File: {_e(video['filename'])}</p>
            <p>Description: {_e(video['description'])}</p>
            <a href="/admin/videos/{_e(video['id'])}/edit">Edit</a> |
            <a href="/admin/videos/{_e(video['id'])}/delete" onclick="return confirm('Are you sure you want to delete this video?')">Delete</a>
        </div>"""
        for video in videos
    )
    body = f"""    <h1>Manage videos</h1>
    <div class="video-container">
{cards}
    </div>"""
    return _document("Manage videos", body)


def render_edit_page(video: Mapping[str, Any]) -> str:
    body = f"""    <h1>Edit video</h1>
    <form action="/admin/videos/{_e(video['id'])}/edit" method="post">
        <label for="description">Description:</label>
        <input type="text" id="description" name="description" value="{_e(video['description'])}"><br><br>
        <button type="submit">Save changes</button>
    </form>
    <p><a href="/admin/videos">Back to videos</a></p>"""
    return _document("Edit video", body)


def render_error_page(status_code: int, message: str) -> str:
    body = f"""    <h1>{status_code}</h1>
    <p>{_e(message)}</p>"""
    return _document(f"Error {status_code}", body)
