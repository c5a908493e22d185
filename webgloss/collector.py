"""HTML page loading and text node collection."""

from __future__ import annotations

import pathlib
from typing import Iterator, List, Optional, Union

import requests
from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from .errors import PageLoadError
from .structures import NodeRef, TextUnit

MIN_TEXT_LENGTH = 5

SKIPPED_PARENTS = {"script", "style"}
NON_RENDERED_TAGS = {
    "head",
    "title",
    "meta",
    "link",
    "noscript",
    "template",
    "script",
    "style",
}


def is_rendered(tag: Tag) -> bool:
    """Best-effort check that an element produces a layout box."""

    if tag.name in NON_RENDERED_TAGS:
        return False
    if tag.has_attr("hidden"):
        return False
    if tag.get("aria-hidden") == "true":
        return False
    style = str(tag.get("style", "")).replace(" ", "").lower()
    if "display:none" in style or "visibility:hidden" in style:
        return False
    if tag.name == "input" and tag.get("type") == "hidden":
        return False
    return True


def _ancestors_rendered(node: NavigableString, root: Tag) -> bool:
    for parent in node.parents:
        if not isinstance(parent, Tag) or isinstance(parent, BeautifulSoup):
            break
        if not is_rendered(parent):
            return False
        if parent is root:
            break
    return True


def _location(node: NavigableString, root: Tag) -> str:
    names: List[str] = []
    for parent in node.parents:
        if isinstance(parent, BeautifulSoup):
            break
        names.append(parent.name)
        if parent is root:
            break
    names.reverse()
    return " > ".join(names)


def _node_ref(node: NavigableString) -> NodeRef:
    current = [node]

    def _getter() -> str:
        return str(current[0])

    def _setter(text: str) -> None:
        replacement = NavigableString(text)
        current[0].replace_with(replacement)
        current[0] = replacement

    return NodeRef(_getter, _setter)


def is_eligible(node: object, root: Tag) -> bool:
    """Return True when a tree node should be offered for translation."""

    if not isinstance(node, NavigableString) or isinstance(node, PreformattedString):
        return False
    parent = node.parent
    if parent is None or parent.name in SKIPPED_PARENTS:
        return False
    if not _ancestors_rendered(node, root):
        return False
    return len(node.strip()) > MIN_TEXT_LENGTH


def collect_text_units(root: Tag) -> Iterator[TextUnit]:
    """Yield eligible text nodes below ``root`` in document order."""

    position = 0
    for node in root.descendants:
        if not is_eligible(node, root):
            continue
        yield TextUnit(
            unit_id=f"node{position}",
            original_text=str(node),
            owner=_node_ref(node),
            position=position,
            location=_location(node, root),
        )
        position += 1


class HtmlPage:
    """A parsed HTML document whose text can be rewritten in place."""

    def __init__(self, markup: Union[str, bytes], *, source: str = "<string>") -> None:
        self.source = source
        self.soup = BeautifulSoup(markup, "html.parser")

    @classmethod
    def from_string(cls, markup: str) -> "HtmlPage":
        return cls(markup)

    @classmethod
    def from_file(cls, path: pathlib.Path) -> "HtmlPage":
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise PageLoadError(f"Could not read {path}: {exc}") from exc
        return cls(data, source=str(path))

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        session: Optional[requests.Session] = None,
    ) -> "HtmlPage":
        http = session or requests.Session()
        try:
            response = http.get(url)
        except requests.RequestException as exc:
            raise PageLoadError(f"Could not fetch {url}: {exc}") from exc
        if response.status_code != 200:
            raise PageLoadError(
                f"Fetching {url} returned HTTP {response.status_code}."
            )
        return cls(response.content, source=url)

    @property
    def root(self) -> Tag:
        """The body element, or the whole document when there is none."""

        body = self.soup.body
        return body if body is not None else self.soup

    def render(self) -> str:
        return str(self.soup)

    def save(self, destination: pathlib.Path) -> None:
        destination.write_text(self.render(), encoding="utf-8")


def load_page(location: str) -> HtmlPage:
    """Load a page from an http(s) URL or a local path."""

    if location.startswith(("http://", "https://")):
        return HtmlPage.from_url(location)
    return HtmlPage.from_file(pathlib.Path(location).expanduser())
