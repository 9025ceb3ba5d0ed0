import logging

from drafts import LyricWorkflow, ScoreWorkflow
from session import SessionState

logger = logging.getLogger(__name__)

PAGES = ("home", "saved", "lyrics", "score")


class Workspace:
    """Everything one user works with: the analysis session, both drafts,
    and the shared history and library stores they write to.

    Switching pages only changes ``page``; drafts stay as they are until
    cleared explicitly.
    """

    def __init__(self, backend, history, library):
        self.history = history
        self.library = library
        self.session = SessionState(backend, history, library)
        self.lyrics = LyricWorkflow(backend, history, library)
        self.score = ScoreWorkflow(backend)
        self.page = "home"

    @property
    def backend(self):
        return self.session.backend

    def set_backend(self, backend):
        self.session.backend = backend
        self.lyrics.backend = backend
        self.score.backend = backend

    def navigate(self, page):
        if page not in PAGES:
            raise ValueError(f"Unknown page: {page}")
        logger.debug("Navigating %s -> %s", self.page, page)
        self.page = page

    def create_folder(self, name, color=None):
        """Create a library folder; blank names are ignored and return None."""
        if not name or not name.strip():
            return None
        return self.library.create_folder(name, color)
