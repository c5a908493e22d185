from unittest.mock import MagicMock

import pytest
import requests

from webgloss.collector import HtmlPage, collect_text_units, load_page
from webgloss.errors import PageLoadError, RevokedNodeError


PAGE = """
<html>
  <head><title>Titre de la page</title><style>body { color: red; }</style></head>
  <body>
    <h1>Bienvenue sur le site</h1>
    <script>var message = "ne pas traduire";</script>
    <p>Ceci est un paragraphe.</p>
    <p>Oui</p>
    <!-- commentaire assez long -->
    <div style="display: none"><p>Texte caché ici</p></div>
    <div hidden>Encore un texte caché</div>
    <span aria-hidden="true">Icône décorative</span>
    <ul><li>Premier élément</li><li>Second élément</li></ul>
  </body>
</html>
"""


def _texts(units):
    return [unit.original_text.strip() for unit in units]


def test_collects_visible_text_in_document_order() -> None:
    page = HtmlPage.from_string(PAGE)

    units = list(collect_text_units(page.root))

    assert _texts(units) == [
        "Bienvenue sur le site",
        "Ceci est un paragraphe.",
        "Premier élément",
        "Second élément",
    ]
    assert [unit.position for unit in units] == [0, 1, 2, 3]
    assert units[1].location == "body > p"


def test_collection_is_lazy() -> None:
    page = HtmlPage.from_string("<body><p>Premier texte</p><p>Second texte</p></body>")

    iterator = collect_text_units(page.root)

    assert next(iterator).original_text == "Premier texte"


def test_short_text_is_ignored() -> None:
    page = HtmlPage.from_string("<body><p>12345</p><p>123456</p><p>   abc   </p></body>")

    assert _texts(collect_text_units(page.root)) == ["123456"]


def test_original_text_keeps_surrounding_whitespace() -> None:
    page = HtmlPage.from_string("<body><p>  Guten Morgen  </p></body>")

    units = list(collect_text_units(page.root))

    assert units[0].original_text == "  Guten Morgen  "


def test_document_without_body_uses_whole_tree() -> None:
    page = HtmlPage.from_string("<div>Texte sans corps</div>")

    assert _texts(collect_text_units(page.root)) == ["Texte sans corps"]


def test_owner_writes_back_into_document() -> None:
    page = HtmlPage.from_string("<body><p>Bonjour tout le monde</p></body>")
    unit = next(collect_text_units(page.root))

    unit.owner.write("Hello everyone")
    unit.owner.write("Hello world")

    assert "<p>Hello world</p>" in page.render()
    assert unit.owner.read() == "Hello world"


def test_revoked_owner_cannot_read_or_write() -> None:
    page = HtmlPage.from_string("<body><p>Bonjour tout le monde</p></body>")
    unit = next(collect_text_units(page.root))

    unit.owner.revoke()

    assert unit.owner.revoked
    with pytest.raises(RevokedNodeError):
        unit.owner.write("Hello")
    with pytest.raises(RevokedNodeError):
        unit.owner.read()


def test_save_writes_rendered_page(tmp_path) -> None:
    source = tmp_path / "page.html"
    source.write_text("<body><p>Hallo Welt!</p></body>", encoding="utf-8")
    page = HtmlPage.from_file(source)
    next(collect_text_units(page.root)).owner.write("Hello world!")

    destination = tmp_path / "out.html"
    page.save(destination)

    assert "Hello world!" in destination.read_text(encoding="utf-8")


def test_missing_file_raises_page_load_error(tmp_path) -> None:
    with pytest.raises(PageLoadError):
        load_page(str(tmp_path / "missing.html"))


def test_from_url_fetches_page() -> None:
    session = MagicMock()
    session.get.return_value = MagicMock(
        status_code=200, content=b"<body><p>Texte distant</p></body>"
    )

    page = HtmlPage.from_url("https://example.com/page.html", session=session)

    assert _texts(collect_text_units(page.root)) == ["Texte distant"]
    assert page.source == "https://example.com/page.html"


def test_from_url_reports_http_and_transport_failures() -> None:
    session = MagicMock()
    session.get.return_value = MagicMock(status_code=404, content=b"")
    with pytest.raises(PageLoadError):
        HtmlPage.from_url("https://example.com/missing", session=session)

    session.get.side_effect = requests.ConnectionError("offline")
    with pytest.raises(PageLoadError):
        HtmlPage.from_url("https://example.com/", session=session)
