"""
Repository showcase pipeline.

Fetches a GitHub user's profile and every public repository (REST, paginated),
orders the repositories originals-first, and renders the profile summary and
a filterable grid of project cards as HTML fragments.

The fetched sequence is held by a ShowcaseController for the lifetime of a
page view; changing the filter only re-renders from that sequence.
"""

from __future__ import annotations

import datetime as dt
import enum
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlsplit

import requests
from markupsafe import Markup, escape

from settings import Settings

logger = logging.getLogger(__name__)

NO_DESCRIPTION = "No description available."
NO_RESULTS_HTML = Markup('<p class="no-results">No repositories found.</p>')
LOAD_ERROR_MESSAGE = "Failed to load data from GitHub. Please try again later."
ABOUT_FALLBACK = "I'm a software developer passionate about building great software."


# -----------------------------
# HTTP helpers
# -----------------------------
class GitHubAPIError(RuntimeError):
    pass


def _headers(settings: Settings) -> Dict[str, str]:
    h = {
        "Accept": "application/vnd.github+json",
        "User-Agent": "repo-showcase-flask",
        "X-GitHub-Api-Version": settings.api_version,
    }
    if settings.token:
        h["Authorization"] = f"Bearer {settings.token}"
    return h


def _request_json(url: str, settings: Settings, *, params: Optional[dict] = None) -> Any:
    """
    Single GET against the REST API. No retries: any transport error or
    non-2xx status raises GitHubAPIError.
    """
    try:
        resp = requests.get(url, headers=_headers(settings), params=params, timeout=settings.timeout)
    except requests.RequestException as e:
        raise GitHubAPIError(f"GitHub REST request failed: {e}") from e

    if not 200 <= resp.status_code < 300:
        raise GitHubAPIError(f"GitHub REST error {resp.status_code}: {resp.text[:600]}")

    return resp.json()


def _user_url(settings: Settings, username: str) -> str:
    return f"{settings.api_base}/users/{requests.utils.quote(username, safe='')}"


# -----------------------------
# Models
# -----------------------------
def _now_utc() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _parse_timestamp(s: str) -> dt.datetime:
    parsed = dt.datetime.fromisoformat(s.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


@dataclass(frozen=True)
class Repository:
    name: str
    html_url: str
    description: Optional[str]
    language: Optional[str]
    stargazers_count: int
    forks_count: int
    homepage: Optional[str]
    updated_at: dt.datetime
    fork: bool

    @classmethod
    def from_api(cls, obj: Dict[str, Any]) -> "Repository":
        return cls(
            name=obj["name"],
            html_url=obj["html_url"],
            description=obj.get("description") or None,
            language=obj.get("language") or None,
            stargazers_count=int(obj.get("stargazers_count") or 0),
            forks_count=int(obj.get("forks_count") or 0),
            homepage=obj.get("homepage") or None,
            updated_at=_parse_timestamp(obj["updated_at"]),
            fork=bool(obj.get("fork")),
        )


@dataclass(frozen=True)
class Profile:
    login: str
    name: Optional[str]
    avatar_url: str
    bio: Optional[str]
    public_repos: int
    followers: int
    following: int
    company: Optional[str]
    location: Optional[str]
    blog: Optional[str]

    @classmethod
    def from_api(cls, obj: Dict[str, Any]) -> "Profile":
        return cls(
            login=obj["login"],
            name=obj.get("name") or None,
            avatar_url=obj.get("avatar_url") or "",
            bio=obj.get("bio") or None,
            public_repos=int(obj.get("public_repos") or 0),
            followers=int(obj.get("followers") or 0),
            following=int(obj.get("following") or 0),
            company=obj.get("company") or None,
            location=obj.get("location") or None,
            blog=obj.get("blog") or None,
        )


class FilterState(str, enum.Enum):
    ALL = "all"
    ORIGINAL = "original"
    FORKS = "forks"

    @classmethod
    def parse(cls, value: Any) -> "FilterState":
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            raise ValueError(f"Unknown filter {value!r}; expected one of: {', '.join(f.value for f in cls)}") from None


FILTER_LABELS = {
    FilterState.ALL: "All",
    FilterState.ORIGINAL: "Original",
    FilterState.FORKS: "Forks",
}


# -----------------------------
# Fetchers
# -----------------------------
def paginate(fetch_page: Callable[[int], List[Any]], page_size: int) -> List[Any]:
    """
    Request pages 1, 2, ... until one comes back with fewer than page_size
    items, concatenating them in order.
    """
    items: List[Any] = []
    page = 1
    while True:
        chunk = fetch_page(page)
        items.extend(chunk)
        if len(chunk) < page_size:
            return items
        page += 1


def fetch_profile(username: str, settings: Settings) -> Profile:
    return Profile.from_api(_request_json(_user_url(settings, username), settings))


def fetch_all_repos(username: str, settings: Settings) -> List[Repository]:
    url = f"{_user_url(settings, username)}/repos"

    def fetch_page(page: int) -> List[Dict[str, Any]]:
        page_repos = _request_json(url, settings, params={"per_page": settings.per_page, "page": page, "sort": "updated"})
        logger.info(f"Fetched repo page {page} for {username}: {len(page_repos)} repositories")
        return page_repos

    return [Repository.from_api(r) for r in paginate(fetch_page, settings.per_page)]


def load_showcase(settings: Settings) -> Tuple[Profile, List[Repository]]:
    """Fetch the profile and the full repo list concurrently; both must succeed."""
    with ThreadPoolExecutor(max_workers=2) as pool:
        profile_future = pool.submit(fetch_profile, settings.username, settings)
        repos_future = pool.submit(fetch_all_repos, settings.username, settings)
        return profile_future.result(), repos_future.result()


# -----------------------------
# Sorting & filtering
# -----------------------------
def _updated(repo: Repository) -> dt.datetime:
    return repo.updated_at


def sort_repos(repos: Iterable[Repository]) -> List[Repository]:
    """Originals first, then forks; each group most recently updated first."""
    repos = list(repos)
    originals = [r for r in repos if not r.fork]
    forks = [r for r in repos if r.fork]
    # sorted() keeps equal keys in input order even with reverse=True
    return sorted(originals, key=_updated, reverse=True) + sorted(forks, key=_updated, reverse=True)


def filter_repos(repos: List[Repository], filter_state: FilterState) -> List[Repository]:
    if filter_state is FilterState.ORIGINAL:
        return [r for r in repos if not r.fork]
    if filter_state is FilterState.FORKS:
        return [r for r in repos if r.fork]
    return list(repos)


# -----------------------------
# Rendering
# -----------------------------
DEFAULT_LANGUAGE_COLOR = "#8b949e"

# Based on GitHub's linguist colors
LANGUAGE_COLORS = {
    "JavaScript": "#f1e05a",
    "TypeScript": "#3178c6",
    "Python": "#3572A5",
    "Java": "#b07219",
    "C++": "#f34b7d",
    "C": "#555555",
    "C#": "#178600",
    "Ruby": "#701516",
    "Go": "#00ADD8",
    "Rust": "#dea584",
    "Swift": "#F05138",
    "Kotlin": "#A97BFF",
    "PHP": "#4F5D95",
    "HTML": "#e34c26",
    "CSS": "#563d7c",
    "SCSS": "#c6538c",
    "Shell": "#89e051",
    "Vue": "#41b883",
    "Dart": "#00B4AB",
    "Elixir": "#6e4a7e",
    "Haskell": "#5e5086",
    "Lua": "#000080",
    "R": "#198CE7",
    "Scala": "#c22d40",
    "Clojure": "#db5855",
    "Erlang": "#B83998",
    "Julia": "#a270ba",
    "Jupyter Notebook": "#DA5B0B",
}

STAR_ICON = Markup(
    '<svg viewBox="0 0 16 16" width="16" height="16" fill="currentColor">'
    '<path d="M8 .25a.75.75 0 01.673.418l1.882 3.815 4.21.612a.75.75 0 01.416 1.279l-3.046 2.97.719 '
    "4.192a.75.75 0 01-1.088.791L8 12.347l-3.766 1.98a.75.75 0 01-1.088-.79l.72-4.194L.818 6.374a.75.75 "
    '0 01.416-1.28l4.21-.611L7.327.668A.75.75 0 018 .25z"/></svg>'
)

FORK_ICON = Markup(
    '<svg viewBox="0 0 16 16" width="16" height="16" fill="currentColor">'
    '<path d="M5 3.25a.75.75 0 11-1.5 0 .75.75 0 011.5 0zm0 2.122a2.25 2.25 0 10-1.5 0v.878A2.25 2.25 0 '
    "005.75 8.5h1.5v2.128a2.251 2.251 0 101.5 0V8.5h1.5a2.25 2.25 0 002.25-2.25v-.878a2.25 2.25 0 10-1.5 "
    "0v.878a.75.75 0 01-.75.75h-4.5A.75.75 0 015 6.25v-.878zm3.75 7.378a.75.75 0 11-1.5 0 .75.75 0 011.5 "
    '0zm3-8.75a.75.75 0 100-1.5.75.75 0 000 1.5z"/></svg>'
)


def language_color(language: Optional[str]) -> str:
    return LANGUAGE_COLORS.get(language or "", DEFAULT_LANGUAGE_COLOR)


def safe_url(url: Optional[str]) -> str:
    """Only http(s) URLs are allowed into href/src attributes."""
    if not url:
        return "#"
    scheme = urlsplit(url.strip()).scheme.lower()
    return url.strip() if scheme in ("http", "https") else "#"


def relative_label(days: int) -> str:
    if days <= 0:
        return "today"
    if days == 1:
        return "yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        return f"{days // 7} weeks ago"
    if days < 365:
        return f"{days // 30} months ago"
    return f"{days // 365} years ago"


def format_relative(ts: dt.datetime, now: Optional[dt.datetime] = None) -> str:
    now = now or _now_utc()
    return relative_label((now - ts) // dt.timedelta(days=1))


def render_card(repo: Repository, now: Optional[dt.datetime] = None) -> Markup:
    classes = "project-card is-fork" if repo.fork else "project-card"
    badge = Markup('<span class="fork-badge">Fork</span>') if repo.fork else ""
    language_name = escape(repo.language) if repo.language else ""
    demo = ""
    if repo.homepage:
        demo = Markup(
            '<a href="{}" target="_blank" rel="noopener noreferrer" class="project-demo">View Demo</a>'
        ).format(safe_url(repo.homepage))

    return Markup(
        '<article class="{classes}">'
        '<div class="project-header">'
        '<h3 class="project-title">'
        '<a href="{url}" target="_blank" rel="noopener noreferrer">{name}</a>'
        "</h3>{badge}</div>"
        '<p class="project-description">{description}</p>'
        '<div class="project-meta">'
        '<span class="project-language">'
        '<span class="language-dot" style="background-color: {color}"></span>{language}</span>'
        '<span class="project-stars">{star_icon}{stars}</span>'
        '<span class="project-forks">{fork_icon}{forks}</span>'
        "</div>"
        '<div class="project-updated">Updated {updated}</div>'
        "{demo}"
        "</article>"
    ).format(
        classes=classes,
        url=safe_url(repo.html_url),
        name=repo.name,
        badge=badge,
        description=repo.description or NO_DESCRIPTION,
        color=language_color(repo.language),
        language=language_name,
        star_icon=STAR_ICON,
        stars=repo.stargazers_count,
        fork_icon=FORK_ICON,
        forks=repo.forks_count,
        updated=format_relative(repo.updated_at, now),
        demo=demo,
    )


def render_grid(repos: List[Repository], filter_state: FilterState, now: Optional[dt.datetime] = None) -> Markup:
    visible = filter_repos(repos, filter_state)
    if not visible:
        return NO_RESULTS_HTML
    return Markup("").join(render_card(r, now) for r in visible)


def render_error(message: str = LOAD_ERROR_MESSAGE) -> Markup:
    return Markup(
        '<div class="error-message"><p>{}</p>'
        '<button type="button" onclick="location.reload()">Retry</button></div>'
    ).format(message)


@dataclass(frozen=True)
class ProfileView:
    avatar_src: str
    avatar_alt: str
    display_name: str
    bio: Optional[str]
    repo_count: int
    followers: int
    following: int
    blog_href: Optional[str]
    about_text: str


def compose_about(profile: Profile) -> str:
    about = profile.bio or ABOUT_FALLBACK
    if profile.company:
        about += f" Currently working at {profile.company}."
    if profile.location:
        about += f" Based in {profile.location}."
    return about


def render_profile(profile: Profile) -> ProfileView:
    display_name = profile.name or profile.login
    blog_href = None
    if profile.blog:
        blog_href = safe_url(profile.blog if profile.blog.lower().startswith(("http://", "https://")) else f"https://{profile.blog}")
    return ProfileView(
        avatar_src=safe_url(profile.avatar_url),
        avatar_alt=f"{display_name}'s avatar",
        display_name=display_name,
        bio=profile.bio,
        repo_count=profile.public_repos,
        followers=profile.followers,
        following=profile.following,
        blog_href=blog_href,
        about_text=compose_about(profile),
    )


# -----------------------------
# Controller
# -----------------------------
class ShowcaseController:
    """Owns one page view's data: the profile, the sorted repos and the active filter."""

    def __init__(self, profile: Profile, repos: Iterable[Repository]):
        self.profile = profile
        self._repos: Tuple[Repository, ...] = tuple(sort_repos(repos))
        self.current_filter = FilterState.ALL
        self._lock = threading.Lock()

    @classmethod
    def load(cls, settings: Settings) -> "ShowcaseController":
        profile, repos = load_showcase(settings)
        logger.info(f"Loaded profile {profile.login} with {len(repos)} repositories")
        return cls(profile, repos)

    @property
    def repos(self) -> List[Repository]:
        return list(self._repos)

    def profile_view(self) -> ProfileView:
        return render_profile(self.profile)

    def visible_repos(self) -> List[Repository]:
        return filter_repos(self.repos, self.current_filter)

    def render_grid(self, now: Optional[dt.datetime] = None) -> Markup:
        return render_grid(self.repos, self.current_filter, now)

    def select_filter(self, value: Any, now: Optional[dt.datetime] = None) -> Markup:
        filter_state = FilterState.parse(value)
        with self._lock:
            self.current_filter = filter_state
        logger.debug(f"Filter changed to {filter_state.value}")
        return render_grid(self.repos, filter_state, now)

    def filter_controls(self) -> List[Tuple[str, str, bool]]:
        return [(f.value, FILTER_LABELS[f], f is self.current_filter) for f in FilterState]
