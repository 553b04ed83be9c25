"""
Repo Showcase (Flask)

What it does:
- Fetches a GitHub user's profile and all public repositories (REST, paginated)
- Renders a profile summary plus a grid of project cards (originals first, then forks)
- Lets the page switch between all / original / forks without refetching
- Bridges an external sign-in widget: holds its ID token and can forward it
  to a backend as a form-encoded POST

Setup:
  pip install -e .

Run:
  export GITHUB_USERNAME="octocat"
  export GITHUB_TOKEN="github_pat_..."   # optional (higher rate limits)
  python app.py
  open http://localhost:5000

Endpoints:
  GET  /                         -> renders the showcase page (fetches once per load)
  GET  /api/projects?filter=     -> re-renders the grid from the held repositories
  POST /auth/callback            -> JSON { "profile": {...}, "id_token": "..." }
  POST /auth/signout             -> revokes the provider session
  POST /auth/submit              -> forwards the held token to TOKEN_ENDPOINT_URL
  GET  /healthz

CLI:
  flask --app app export --output index.html
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional

import click
from flask import Flask, jsonify, render_template, request

from identity_bridge import IdentityBridge, IdentityError, IdentityProfile
from settings import Settings
from showcase import (
    ABOUT_FALLBACK,
    GitHubAPIError,
    ShowcaseController,
    render_error,
)

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _page_context(controller: Optional[ShowcaseController], *, interactive: bool) -> Dict[str, Any]:
    if controller is None:
        return {
            "profile": None,
            "about_fallback": ABOUT_FALLBACK,
            "filters": [],
            "grid": render_error(),
            "interactive": False,
        }
    return {
        "profile": controller.profile_view(),
        "about_fallback": ABOUT_FALLBACK,
        "filters": controller.filter_controls() if interactive else [],
        "grid": controller.render_grid(),
        "interactive": interactive,
    }


def create_app(settings: Optional[Settings] = None) -> Flask:
    settings = settings or Settings.from_env()
    _configure_logging(settings.log_level)

    app = Flask(__name__)
    app.extensions["showcase_settings"] = settings
    app.extensions["showcase"] = None
    app.extensions["identity_bridge"] = IdentityBridge(settings)
    showcase_lock = threading.Lock()

    def _current_showcase() -> Optional[ShowcaseController]:
        with showcase_lock:
            return app.extensions["showcase"]

    # -----------------------------
    # Showcase routes
    # -----------------------------
    @app.route("/", methods=["GET"])
    def home():
        try:
            controller = ShowcaseController.load(settings)
        except GitHubAPIError as e:
            logger.error(f"Error loading showcase for {settings.username}: {e}")
            with showcase_lock:
                app.extensions["showcase"] = None
            return render_template("index.html", **_page_context(None, interactive=False)), 502

        with showcase_lock:
            app.extensions["showcase"] = controller
        return render_template("index.html", **_page_context(controller, interactive=True))

    @app.route("/api/projects", methods=["GET"])
    def api_projects():
        controller = _current_showcase()
        if controller is None:
            return jsonify({"error": "No repositories loaded yet. Load the page first."}), 409

        try:
            grid = controller.select_filter(request.args.get("filter", "all"))
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        return jsonify(
            {
                "filter": controller.current_filter.value,
                "count": len(controller.visible_repos()),
                "html": str(grid),
            }
        )

    # -----------------------------
    # Identity bridge routes
    # -----------------------------
    bridge: IdentityBridge = app.extensions["identity_bridge"]

    @app.route("/auth/callback", methods=["POST"])
    def auth_callback():
        payload = request.get_json(silent=True) or {}
        raw_profile = payload.get("profile")
        if not isinstance(raw_profile, dict):
            return jsonify({"error": "Missing 'profile'."}), 400

        try:
            profile = IdentityProfile.from_callback(raw_profile)
            state = bridge.sign_in(profile, (payload.get("id_token") or "").strip())
        except KeyError as e:
            return jsonify({"error": f"Missing profile field {e}."}), 400
        except IdentityError as e:
            return jsonify({"error": str(e)}), 400

        return jsonify({"state": state.value, "name": profile.name, "email": profile.email})

    @app.route("/auth/signout", methods=["POST"])
    def auth_signout():
        try:
            state = bridge.sign_out()
        except IdentityError as e:
            return jsonify({"error": str(e)}), 409
        return jsonify({"state": state.value})

    @app.route("/auth/submit", methods=["POST"])
    def auth_submit():
        try:
            body = bridge.submit_token()
        except IdentityError as e:
            return jsonify({"error": str(e)}), 409
        return jsonify({"state": bridge.state.value, "response": body})

    @app.route("/healthz", methods=["GET"])
    def healthz():
        return jsonify(
            {
                "ok": True,
                "username": settings.username,
                "token_configured": bool(settings.token),
                "showcase_loaded": _current_showcase() is not None,
                "identity_state": bridge.state.value,
            }
        )

    # -----------------------------
    # CLI
    # -----------------------------
    @app.cli.command("export")
    @click.option("--output", "-o", default="index.html", show_default=True, type=click.Path(dir_okay=False))
    def export_command(output: str) -> None:
        """Fetch the repositories once and write the page as static HTML."""
        try:
            controller = ShowcaseController.load(settings)
        except GitHubAPIError as e:
            raise click.ClickException(f"Failed to load data from GitHub: {e}")

        html = render_template("index.html", **_page_context(controller, interactive=False))
        Path(output).write_text(html, encoding="utf-8")
        click.echo(f"Wrote {len(controller.repos)} repositories to {output}")

    return app


app = create_app()


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=app.extensions["showcase_settings"].port, debug=True)
