#!/usr/bin/env python3
"""
vidhost CLI - run the server, bootstrap the database, upload and delete videos.
"""

import argparse
import os
import sys
from pathlib import Path

import httpx
from rich.progress import (
    BarColumn,
    FileSizeColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TotalFileSizeColumn,
    TransferSpeedColumn,
)

from api.errors import format_size, truncate_error
from config import (
    DATABASE_URL,
    ERROR_DETAIL_MAX_LENGTH,
    ERROR_SUMMARY_MAX_LENGTH,
    HOST,
    MAX_UPLOAD_SIZE,
    PORT,
)

# Default timeout for API requests (30 seconds)
DEFAULT_API_TIMEOUT = int(os.getenv("VIDHOST_API_TIMEOUT", "30"))

# Upload timeout in seconds (default 2 hours, configurable via environment)
UPLOAD_TIMEOUT = int(os.getenv("VIDHOST_UPLOAD_TIMEOUT", "7200"))

# Server URL - the public and admin routes share one server
SERVER_URL = os.getenv("VIDHOST_URL", f"http://localhost:{PORT}").rstrip("/")

# Admin credentials used by `delete`
CLI_ADMIN_USERNAME = os.getenv("VIDHOST_ADMIN_USERNAME", "")
CLI_ADMIN_PASSWORD = os.getenv("VIDHOST_ADMIN_PASSWORD", "")


class CLIError(Exception):
    """Custom exception for CLI errors."""

    pass


class ProgressFileWrapper:
    """Wrapper for file objects that reports upload progress."""

    def __init__(self, file, progress, task_id):
        self.file = file
        self.progress = progress
        self.task_id = task_id

    def read(self, size=-1):
        """Read from the file, advancing progress by the bytes actually read."""
        data = self.file.read(size)
        if data:
            self.progress.update(self.task_id, advance=len(data))
        return data

    def seek(self, *args, **kwargs):
        return self.file.seek(*args, **kwargs)

    def tell(self):
        return self.file.tell()

    def close(self):
        """The underlying file is closed by its owner."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, *args):
        pass


def safe_json_response(response, default_error="Request failed"):
    """
    Parse a JSON response from the upload endpoint.

    Returns:
        Parsed JSON data if successful

    Raises:
        CLIError: If the status is not successful, the body reports
            success=false, or JSON parsing fails
    """
    if not response.is_success:
        try:
            body = response.json()
            detail = body.get("message") or body.get("detail") or default_error
        except ValueError:
            detail = truncate_error(response.text, ERROR_DETAIL_MAX_LENGTH) if response.text else default_error
        raise CLIError(f"API error ({response.status_code}): {detail}")

    try:
        data = response.json()
    except ValueError:
        raise CLIError(f"Invalid JSON response: {truncate_error(response.text, ERROR_SUMMARY_MAX_LENGTH)}")

    if isinstance(data, dict) and data.get("success") is False:
        raise CLIError(data.get("message") or default_error)
    return data


def validate_file(file_path):
    """
    Validate file exists, is readable, non-empty and within the upload limit.

    Returns:
        int: File size in bytes

    Raises:
        CLIError: If any check fails
    """
    if not file_path.exists():
        raise CLIError(f"File not found: {file_path}")

    if not file_path.is_file():
        raise CLIError(f"Path is not a file: {file_path}")

    if not os.access(file_path, os.R_OK):
        raise CLIError(f"File is not readable: {file_path}")

    file_size = file_path.stat().st_size
    if file_size == 0:
        raise CLIError(f"File is empty: {file_path}")

    if file_size > MAX_UPLOAD_SIZE:
        raise CLIError(
            f"File too large ({format_size(file_size)}). "
            f"Maximum upload size is {format_size(MAX_UPLOAD_SIZE)}"
        )

    return file_size


def get_admin_auth(args):
    """HTTP Basic credentials for admin requests (flags override environment)."""
    username = getattr(args, "user", None) or CLI_ADMIN_USERNAME
    password = getattr(args, "password", None) or CLI_ADMIN_PASSWORD
    if not username or not password:
        raise CLIError(
            "Admin credentials required. Set VIDHOST_ADMIN_USERNAME and VIDHOST_ADMIN_PASSWORD "
            "or pass --user/--password."
        )
    return httpx.BasicAuth(username, password)


def handle_auth_error(response) -> bool:
    """
    Check for auth errors and provide helpful message.

    Exits the program on 401.
    """
    if response.status_code == 401:
        print("Error: Authentication failed.")
        print("Check VIDHOST_ADMIN_USERNAME/VIDHOST_ADMIN_PASSWORD against the server configuration.")
        sys.exit(1)
    return False


def build_upload_form(args) -> dict:
    """Form fields for POST /upload, named as the upload form names them."""
    data = {"description": args.description or ""}
    optional = {
        "redirectUrl": args.redirect_url,
        "facebookRedirectUrl": args.facebook_redirect_url,
        "previewTitle": args.preview_title,
        "previewImage": args.preview_image,
        "visitCounterScript": args.visit_counter_script,
    }
    for index, script in enumerate(args.banner or [], start=1):
        optional[f"bannerScript{index}"] = script
    data.update({key: value for key, value in optional.items() if value})

    # Checkboxes are sent only when set, as a browser would
    for flag, field in (
        ("antibot", "useAntibot"),
        ("cloaking", "useCloaking"),
        ("preview", "usePreview"),
        ("visit_counter", "useVisitCounter"),
    ):
        if getattr(args, flag):
            data[field] = "on"
    return data


def cmd_upload(args):
    """Upload a video."""
    try:
        file_path = Path(args.file)
        file_size = validate_file(file_path)
        data = build_upload_form(args)

        print(f"Uploading: {file_path.name} ({format_size(file_size)})")

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            FileSizeColumn(),
            TextColumn("/"),
            TotalFileSizeColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
        ) as progress:
            task_id = progress.add_task("Uploading...", total=file_size)

            with open(file_path, "rb") as f:
                wrapped_file = ProgressFileWrapper(f, progress, task_id)
                files = {"video": (file_path.name, wrapped_file)}

                with httpx.Client(timeout=httpx.Timeout(UPLOAD_TIMEOUT)) as client:
                    response = client.post(f"{SERVER_URL}/upload", files=files, data=data)

        result = safe_json_response(response, "Upload failed")
        print("Success! Video uploaded.")
        print(f"  URL: {SERVER_URL}{result['url']}")

    except httpx.ConnectError:
        print(f"Error: Could not connect to server at {SERVER_URL}")
        print("Make sure the server is running.")
        sys.exit(1)
    except httpx.TimeoutException:
        print(f"Error: Upload timed out (exceeded {UPLOAD_TIMEOUT}s timeout)")
        print("You can increase the timeout with VIDHOST_UPLOAD_TIMEOUT environment variable")
        sys.exit(1)
    except CLIError as e:
        print(f"Error: {e}")
        sys.exit(1)


def cmd_delete(args):
    """Delete a video and its stored file."""
    try:
        response = httpx.get(
            f"{SERVER_URL}/admin/videos/{args.video_id}/delete",
            auth=get_admin_auth(args),
            timeout=DEFAULT_API_TIMEOUT,
            follow_redirects=False,
        )
        handle_auth_error(response)
        if response.status_code == 404:
            raise CLIError(f"Video {args.video_id} not found")
        if not (response.is_redirect or response.is_success):
            raise CLIError(f"API error ({response.status_code}): delete failed")
        print(f"Video {args.video_id} deleted.")
    except httpx.ConnectError:
        print(f"Error: Could not connect to server at {SERVER_URL}")
        sys.exit(1)
    except httpx.TimeoutException:
        print(f"Error: Request timed out while connecting to {SERVER_URL}")
        sys.exit(1)
    except CLIError as e:
        print(f"Error: {e}")
        sys.exit(1)


def cmd_init_db(args):
    """Create the videos table if it doesn't exist."""
    from api.database import create_tables

    url = args.database_url or DATABASE_URL
    try:
        create_tables(url)
    except Exception as e:
        print(f"Error: could not create tables: {truncate_error(str(e), ERROR_DETAIL_MAX_LENGTH)}")
        sys.exit(1)
    print("Database tables created successfully!")


def cmd_serve(args):
    """Run the web server."""
    import uvicorn

    from api.main import configure_logging

    configure_logging(args.log_level)
    uvicorn.run("api.main:create_app", factory=True, host=args.host, port=args.port)


def main(argv=None):
    parser = argparse.ArgumentParser(prog="vidhost", description="vidhost CLI - host videos with redirects and bot controls")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the web server")
    serve_parser.add_argument("--host", default=HOST, help=f"Bind address (default: {HOST})")
    serve_parser.add_argument("--port", type=int, default=PORT, help=f"Port (default: {PORT})")
    serve_parser.add_argument("--log-level", default=os.getenv("VIDHOST_LOG_LEVEL", "INFO").upper(), help="Log level")
    serve_parser.set_defaults(func=cmd_serve)

    # Init-db command
    init_parser = subparsers.add_parser("init-db", help="Create database tables if absent")
    init_parser.add_argument("--database-url", help="Database URL (default: VIDHOST_DATABASE_URL)")
    init_parser.set_defaults(func=cmd_init_db)

    # Upload command
    upload_parser = subparsers.add_parser("upload", help="Upload a video file")
    upload_parser.add_argument("file", help="Video file to upload")
    upload_parser.add_argument("-d", "--description", help="Video description")
    upload_parser.add_argument("--redirect-url", help="Redirect viewers to this URL (counts clicks)")
    upload_parser.add_argument("--facebook-redirect-url", help="Redirect the Facebook crawler to this URL")
    upload_parser.add_argument("--preview-title", help="Social preview title")
    upload_parser.add_argument("--preview-image", help="Social preview image URL")
    upload_parser.add_argument(
        "--banner", action="append", metavar="HTML", help="Banner script (repeat up to 5 times, in order)"
    )
    upload_parser.add_argument("--visit-counter-script", help="Visit counter script")
    upload_parser.add_argument("--antibot", action="store_true", help="Deny known crawlers")
    upload_parser.add_argument("--cloaking", action="store_true", help="Set the cloaking flag")
    upload_parser.add_argument("--preview", action="store_true", help="Set the preview flag")
    upload_parser.add_argument("--visit-counter", action="store_true", help="Set the visit counter flag")
    upload_parser.set_defaults(func=cmd_upload)

    # Delete command
    del_parser = subparsers.add_parser("delete", help="Delete a video")
    del_parser.add_argument("video_id", help="Video ID to delete")
    del_parser.add_argument("-u", "--user", help="Admin username (default: VIDHOST_ADMIN_USERNAME)")
    del_parser.add_argument("-p", "--password", help="Admin password (default: VIDHOST_ADMIN_PASSWORD)")
    del_parser.set_defaults(func=cmd_delete)

    args = parser.parse_args(argv)
    if args.command == "upload" and args.banner and len(args.banner) > 5:
        parser.error("at most 5 --banner values are allowed")
    args.func(args)


if __name__ == "__main__":
    main()
