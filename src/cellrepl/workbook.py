"""Load workbooks

A workbook is a Markdown document with a YAML manifest as front matter:

    ---
    title: Getting started
    platforms: [python]
    packages:
      - id: requests
        version: 2.31.0
    ---

    Some prose...

    ```python
    print("Hello World!")
    ```

Fenced blocks in the workbook language are code cells. Everything else is
kept as Markdown cells, which a console has no use for.

A directory is a multi-page workbook: `index.workbook' is the page that gets
played, and the packages of every page are restored.

"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

import yaml

from .config_classes import DEFAULT_LANGUAGE
from .exceptions import UserResolvableError
from .session.interface import PackageReference

LOG = logging.getLogger(__name__)

WORKBOOK_SUFFIX = ".workbook"
INDEX_PAGE = "index" + WORKBOOK_SUFFIX

_FRONT_MATTER = re.compile(r"\A---[ \t]*\n(.*?)\n---[ \t]*(?:\n|\Z)", re.S)
_FENCE = re.compile(r"^(?P<fence>```+|~~~+)[ \t]*(?P<info>[^\n]*)\n(?P<body>.*?)^(?P=fence)[ \t]*$", re.M | re.S)


class WorkbookError(UserResolvableError):
    """Can't load the workbook"""


CODE = "code"
MARKDOWN = "markdown"


@dataclass(frozen=True)
class Cell:
    kind: str
    source: str

    @property
    def is_code(self):
        return self.kind == CODE


@dataclass
class WorkbookPage:
    path: Path
    title: str = ""
    language: str = DEFAULT_LANGUAGE
    platforms: List[str] = field(default_factory=list)
    packages: Tuple[PackageReference, ...] = ()
    cells: List[Cell] = field(default_factory=list)

    def code_cells(self) -> List[Cell]:
        return [c for c in self.cells if c.is_code]


@dataclass
class Workbook:
    path: Path
    index_page: WorkbookPage
    pages: List[WorkbookPage]

    @property
    def title(self):
        return self.index_page.title

    @property
    def language(self):
        return self.index_page.language

    @property
    def platforms(self):
        return self.index_page.platforms

    @property
    def packages(self) -> Tuple[PackageReference, ...]:
        """Packages declared by all pages, first declaration wins"""
        seen = {}
        for page in self.pages:
            for package in page.packages:
                seen.setdefault(package.id, package)
        return tuple(seen.values())


def _parse_package(item, path: Path) -> PackageReference:
    if isinstance(item, str):
        name, _, version = item.partition("==")
        return PackageReference(name.strip(), version.strip() or None)
    if isinstance(item, dict) and "id" in item:
        version = item.get("version")
        return PackageReference(str(item["id"]), str(version) if version else None)
    raise WorkbookError(f"Bad package entry in {path}: {item!r}", "Use `{id: name, version: x.y}'.")


def _parse_manifest(text: str, path: Path) -> Tuple[dict, str]:
    """Split off and parse the front matter"""
    match = _FRONT_MATTER.match(text)
    if not match:
        return {}, text
    try:
        manifest = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        raise WorkbookError(f"Bad manifest in {path}: {exc}", "The front matter must be YAML.")
    if not isinstance(manifest, dict):
        raise WorkbookError(
            f"Bad manifest in {path}", "The front matter must be a YAML mapping."
        )
    return manifest, text[match.end() :]


def _split_cells(body: str, language: str) -> List[Cell]:
    cells = []
    pos = 0

    def prose(text):
        if text.strip():
            cells.append(Cell(MARKDOWN, text.strip("\n")))

    for match in _FENCE.finditer(body):
        prose(body[pos : match.start()])
        info = match.group("info").split()
        source = match.group("body").rstrip("\n")
        if info and info[0].lower() == language.lower():
            cells.append(Cell(CODE, source))
        else:
            prose(match.group(0))
        pos = match.end()
    prose(body[pos:])
    return cells


def parse_page(text: str, path: Path) -> WorkbookPage:
    manifest, body = _parse_manifest(text, path)
    language = str(manifest.get("language", DEFAULT_LANGUAGE))

    platforms = manifest.get("platforms", [])
    if isinstance(platforms, str):
        platforms = [platforms]

    return WorkbookPage(
        path=path,
        title=str(manifest.get("title", path.stem)),
        language=language,
        platforms=[str(p) for p in platforms],
        packages=tuple(_parse_package(p, path) for p in manifest.get("packages") or []),
        cells=_split_cells(body, language),
    )


def load_page(path: Path) -> WorkbookPage:
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise WorkbookError(f"Can't read {path}: {exc}", "Is it a readable text file?")
    return parse_page(text, path)


def load_workbook(path: Path) -> Workbook:
    """Load a workbook file or multi-page workbook directory"""
    path = Path(path)

    if path.is_dir():
        index_path = path / INDEX_PAGE
        if not index_path.is_file():
            raise WorkbookError(
                f"No {INDEX_PAGE} in {path}",
                "A workbook directory needs an index page to play.",
            )
        index_page = load_page(index_path)
        pages = [index_page] + [
            load_page(p)
            for p in sorted(path.glob("*" + WORKBOOK_SUFFIX))
            if p.name != INDEX_PAGE
        ]
    else:
        index_page = load_page(path)
        pages = [index_page]

    LOG.info(
        "Loaded %s: %d pages, %d code cells",
        path,
        len(pages),
        len(index_page.code_cells()),
    )
    return Workbook(path=path, index_page=index_page, pages=pages)
