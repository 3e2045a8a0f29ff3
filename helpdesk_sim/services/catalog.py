"""
Content Catalog

Read-only knowledge-base articles and ticket templates, loaded once at
startup from JSON files in the content directory. Missing files fall back to
the built-in content below.
"""
import json
from pathlib import Path
from typing import Iterable, Optional, Tuple, List, Union

from pydantic import TypeAdapter

from helpdesk_sim.models.schemas import KBArticle, TicketTemplate
from helpdesk_sim.utils.logger import get_logger

logger = get_logger(__name__)

KB_ARTICLES_FILE = "kb-articles.json"
TICKET_TEMPLATES_FILE = "ticket-templates.json"

DEFAULT_KB_ARTICLES = [
    {
        "id": "kb_101",
        "title": "VPN Connection Error (Error 800)",
        "content": "Check user certificates in the Certs folder. If they have expired, reissue via the portal. Restart Cisco AnyConnect.",
    },
    {
        "id": "kb_102",
        "title": "Printer Paper Jam (HP 4000)",
        "content": "Open tray 2 and check the pickup rollers. If rollers are worn, replacement is required. Temporary solution: clean with alcohol.",
    },
    {
        "id": "kb_103",
        "title": "Outlook Not Synchronizing",
        "content": "Check connection to Exchange. Disable Cached Mode in account settings, restart Outlook, then enable again.",
    },
    {
        "id": "kb_104",
        "title": "Blue Screen (BSOD) SYSTEM_THREAD",
        "content": "Error caused by old video card drivers. Update drivers via Device Manager or manufacturer website.",
    },
    {
        "id": "kb_105",
        "title": "SAP Password Reset",
        "content": "Use transaction SU01. Enter username, go to Logon Data tab and set temporary password.",
    },
]

DEFAULT_TICKET_TEMPLATES = [
    {"title": "VPN Not Working From Home", "description": "Employee cannot connect to the network."},
    {"title": "Printer in Accounting Jammed Paper", "description": "Print queue stalled, red light blinking."},
    {"title": "1C Crashed During Report", "description": "Program closes with memory error."},
    {"title": "Access Needed to Network Folder", "description": "Marketing needs access to Z drive."},
    {"title": "Outlook Not Receiving Email", "description": "Last email received 3 hours ago."},
]

_articles_adapter = TypeAdapter(List[KBArticle])
_templates_adapter = TypeAdapter(List[TicketTemplate])


class ContentCatalog:
    """Immutable lookup over articles and templates"""

    def __init__(
        self,
        articles: Iterable[KBArticle],
        templates: Iterable[TicketTemplate]
    ):
        self._articles: Tuple[KBArticle, ...] = tuple(articles)
        self._templates: Tuple[TicketTemplate, ...] = tuple(templates)
        self._by_id = {article.id: article for article in self._articles}

    @classmethod
    def default(cls) -> "ContentCatalog":
        return cls(
            _articles_adapter.validate_python(DEFAULT_KB_ARTICLES),
            _templates_adapter.validate_python(DEFAULT_TICKET_TEMPLATES),
        )

    @classmethod
    def load(cls, content_dir: Union[str, Path]) -> "ContentCatalog":
        """
        Load catalog content from a directory

        Args:
            content_dir: Directory containing kb-articles.json and
                ticket-templates.json (either may be missing)

        Returns:
            Loaded catalog

        Raises:
            ValueError: If a present file is malformed
        """
        content_dir = Path(content_dir)

        articles_path = content_dir / KB_ARTICLES_FILE
        if articles_path.exists():
            articles = _articles_adapter.validate_python(_read_json(articles_path))
            logger.info(f"Loaded {len(articles)} knowledge base articles from {articles_path}")
        else:
            logger.warning(f"{articles_path} not found, using default articles")
            articles = _articles_adapter.validate_python(DEFAULT_KB_ARTICLES)

        templates_path = content_dir / TICKET_TEMPLATES_FILE
        if templates_path.exists():
            templates = _templates_adapter.validate_python(_read_json(templates_path))
            logger.info(f"Loaded {len(templates)} ticket templates from {templates_path}")
        else:
            logger.warning(f"{templates_path} not found, using default templates")
            templates = _templates_adapter.validate_python(DEFAULT_TICKET_TEMPLATES)

        return cls(articles, templates)

    @property
    def articles(self) -> Tuple[KBArticle, ...]:
        return self._articles

    @property
    def templates(self) -> Tuple[TicketTemplate, ...]:
        return self._templates

    def article(self, kb_id: Optional[str]) -> Optional[KBArticle]:
        if not kb_id:
            return None
        return self._by_id.get(kb_id)

    def match_article(self, title: str) -> Optional[KBArticle]:
        """
        Find the first article whose title mentions a word of the ticket title

        Words of three characters or fewer are ignored. No match is a valid
        outcome.
        """
        words = [word for word in title.lower().split(" ") if len(word) > 3]
        for article in self._articles:
            article_title = article.title.lower()
            if any(word in article_title for word in words):
                return article
        return None


def _read_json(path: Path):
    try:
        with path.open(encoding="utf-8") as fh:
            return json.load(fh)
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed content file {path}: {e}") from e
