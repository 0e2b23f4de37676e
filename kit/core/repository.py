"""Repository management for Kit."""

import logging
from pathlib import Path
from typing import Optional

from .errors import NotARepository, RepositoryExists, StoreIOError
from .index import Index
from .store import ObjectStore
from .workspace import IgnorePredicate, WorkspaceScanner

logger = logging.getLogger(__name__)

METADATA_DIR = '.git'


class Repository:
    """
    Represents a Kit repository.

    An explicit handle on the resolved metadata layout: the object
    directory, index path, HEAD path and config path. Components that
    need repository state take the handle as an argument.
    """

    def __init__(self, path: str = '.'):
        """
        Initialize repository.

        Args:
            path: Path to repository root (defaults to current directory)
        """
        self.work_tree = Path(path).resolve()
        self.metadata_dir = METADATA_DIR
        self.git_dir = self.work_tree / METADATA_DIR
        self.objects_dir = self.git_dir / 'objects'
        self.refs_dir = self.git_dir / 'refs'
        self.heads_dir = self.refs_dir / 'heads'
        self.tags_dir = self.refs_dir / 'tags'
        self.info_dir = self.git_dir / 'info'
        self.head_file = self.git_dir / 'HEAD'
        self.index_file = self.git_dir / 'index'
        self.config_file = self.git_dir / 'config'

        self._object_store = None
        self._ref_manager = None
        self._config = None

    @property
    def objects(self) -> ObjectStore:
        """Get ObjectStore instance."""
        if self._object_store is None:
            self._object_store = ObjectStore(self.objects_dir)
        return self._object_store

    @property
    def refs(self):
        """Get RefManager instance."""
        if self._ref_manager is None:
            from .refs import RefManager
            self._ref_manager = RefManager(self)
        return self._ref_manager

    @property
    def config(self):
        """Get Config instance."""
        if self._config is None:
            from .config import Config
            self._config = Config(self.config_file)
        return self._config

    def workspace(self, ignore: Optional[IgnorePredicate] = None) -> WorkspaceScanner:
        """Create a scanner over the work tree."""
        return WorkspaceScanner(self.work_tree, self.metadata_dir, ignore)

    def ignore_matcher(self):
        """Ignore rules from .gitignore and info/exclude."""
        from kit.utils.ignore import get_ignore_matcher
        return get_ignore_matcher(self.work_tree, self.git_dir)

    def load_index(self) -> Index:
        """Read the index file (empty if it does not exist yet)."""
        return Index.load(self.index_file, self.metadata_dir)

    def locked_index(self):
        """Context manager holding the index lock; see ``Index.locked``."""
        return Index.locked(self.index_file, self.metadata_dir)

    def init(self, initial_branch: str = 'main') -> 'Repository':
        """
        Initialize a new repository.

        Creates the .git directory structure:
        .git/
        ├── objects/       # Object database
        ├── refs/
        │   ├── heads/     # Branch references
        │   └── tags/      # Tag references
        ├── info/          # exclude patterns
        ├── HEAD           # Current branch
        └── config         # Repository configuration

        The index is created by the first ``add``.

        Returns:
            Repository: self for method chaining

        Raises:
            RepositoryExists: If the metadata directory already exists
            StoreIOError: If the layout cannot be created
        """
        if self.git_dir.exists():
            raise RepositoryExists(str(self.git_dir))

        try:
            self.git_dir.mkdir(parents=True)
            self.objects_dir.mkdir()
            self.refs_dir.mkdir()
            self.heads_dir.mkdir()
            self.tags_dir.mkdir()
            self.info_dir.mkdir()

            self.head_file.write_text(f'ref: refs/heads/{initial_branch}\n')

            config_content = (
                '[core]\n'
                '\trepositoryformatversion = 0\n'
                '\tfilemode = true\n'
                '\tbare = false\n'
            )
            self.config_file.write_text(config_content)
        except OSError as e:
            raise StoreIOError(str(self.git_dir), e.strerror or str(e)) from e

        logger.debug("Initialized repository in %s", self.git_dir)
        return self

    @classmethod
    def find_repository(cls, path: str = '.') -> Optional['Repository']:
        """
        Find repository by searching up the directory tree.

        Searches from the given path upwards until it finds a .git directory
        or reaches the filesystem root.

        Returns:
            Repository if found, None otherwise
        """
        current = Path(path).resolve()

        while True:
            if (current / METADATA_DIR).is_dir():
                return cls(str(current))

            # Reached filesystem root
            if current == current.parent:
                return None

            current = current.parent

    @classmethod
    def discover(cls, path: str = '.') -> 'Repository':
        """
        Like ``find_repository`` but raise when nothing is found.

        Raises:
            NotARepository: If no enclosing repository exists
        """
        repo = cls.find_repository(path)
        if repo is None:
            raise NotARepository(str(Path(path).resolve()))
        return repo

    def __repr__(self) -> str:
        """String representation of repository."""
        return f"Repository(path={self.work_tree})"
