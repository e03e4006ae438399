"""Main server implementation for the vcsync MCP server."""

import logging
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from .config import Config, load_configuration, validate_configuration
from .git_sync.clone import clone_into
from .git_sync.error_types import VcsError
from .git_sync.manager import ProjectRepositoryManager
from .git_sync.operations import BranchMutator
from .git_sync.utils import GitResult


def setup_logging(config: Config) -> None:
    """Setup logging configuration with structured logging."""
    # Prefixes records logged with extra={"operation": ...}
    class StructuredFormatter(logging.Formatter):
        def format(self, record):
            if hasattr(record, 'operation'):
                record.msg = f"[{record.operation}] {record.msg}"
            return super().format(record)

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    loggers = [
        'vcsync.init',
        'vcsync.git_sync',
    ]

    formatter = StructuredFormatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    for logger_name in loggers:
        logger = logging.getLogger(logger_name)
        logger.setLevel(getattr(logging, config.log_level))

        if not logger.handlers:
            # MCP owns stdout on the stdio transport
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.propagate = False


def _not_a_repository(path: Path) -> Dict[str, Any]:
    error = VcsError.not_a_repository(f"{path} is not inside a git repository")
    return {"success": False, "message": error.message, "error": error.to_dict()}


class ProjectSession:
    """Opens projects on demand for tool calls and serializes access to the manager."""

    def __init__(self, manager: ProjectRepositoryManager):
        self.manager = manager
        self._lock = threading.Lock()
        self.logger = logging.getLogger('vcsync.init')

    def _ensure_open(self, path: str) -> Path:
        root = Path(path).expanduser().resolve()
        if self.manager.project_root != root:
            self.manager.open_project(root)
        else:
            self.manager.process_updates()
        return root

    def state(self, path: str) -> Dict[str, Any]:
        with self._lock:
            root = Path(path).expanduser().resolve()
            if self.manager.project_root != root:
                state = self.manager.open_project(root)
            else:
                self.manager.process_updates()
                state = self.manager.refresh()
            if state is None:
                return _not_a_repository(root)
            return {"success": True, "state": state.to_dict()}

    def changed_files(self, path: str) -> Dict[str, Any]:
        with self._lock:
            root = self._ensure_open(path)
            if self.manager.repo_root is None:
                return _not_a_repository(root)
            result = self.manager.change_set()
            response = result.to_dict()
            if result.success:
                response["files"] = [changed.to_dict() for changed in result.value]
            return response

    def mutate(self, path: str, action) -> Dict[str, Any]:
        """Run ``action(mutator)`` and refresh the stored state afterwards."""
        with self._lock:
            self._ensure_open(path)
            result: GitResult = action(self.manager.mutator)
            state = self.manager.refresh()
            response = result.to_dict()
            response["state"] = state.to_dict() if state is not None else None
            return response

    def init_repository(self, path: str) -> Dict[str, Any]:
        """Initialize ``path`` itself, even when it sits inside another repository."""
        with self._lock:
            root = Path(path).expanduser().resolve()
            root.mkdir(parents=True, exist_ok=True)
            mutator = BranchMutator(self.manager.runner, self.manager.config, root)
            result = mutator.init_repository()
            state = self.manager.open_project(root)
            response = result.to_dict()
            response["state"] = state.to_dict() if state is not None else None
            return response

    def clone(self, path: str, remote_url: str) -> Dict[str, Any]:
        with self._lock:
            result = clone_into(self.manager.runner, path, remote_url)
            response = result.to_dict()
            if result.success:
                state = self.manager.open_project(path)
                response["state"] = state.to_dict() if state is not None else None
            return response

    def resources(self, path: str, commit_hash: str) -> Dict[str, Any]:
        with self._lock:
            root = self._ensure_open(path)
            if self.manager.repo_root is None:
                return _not_a_repository(root)
            result = self.manager.changes.resources_at_commit(self.manager.repo_root, commit_hash)
            response = result.to_dict()
            if result.success:
                response["resources"] = result.value
            return response

    def close(self) -> None:
        with self._lock:
            self.manager.close()


def register_tools(server: FastMCP, server_config: Config) -> ProjectSession:
    """Register MCP tools with the server instance."""
    session = ProjectSession(ProjectRepositoryManager(server_config))

    if server_config.project_dir is not None:
        session.state(str(server_config.project_dir))

    @server.tool()
    def repository_state(path: str) -> dict:
        """
        Load the full state of the repository containing ``path``.

        Returns branches (local first, then remote-tracking), the current
        branch, every branch's commits newest first, ahead/behind counts of
        the current branch against origin, and origin's reachability.

        Args:
            path: Project folder inside a git working copy
        """
        return session.state(path)

    @server.tool()
    def changed_files(path: str) -> dict:
        """
        List uncommitted changes of the project folder at ``path``.

        Each entry carries its status, whether it is staged, and the
        original and current content.
        """
        return session.changed_files(path)

    @server.tool()
    def checkout_branch(path: str, branch: str) -> dict:
        """Switch the working copy to ``branch``."""
        return session.mutate(path, lambda mutator: mutator.checkout(branch))

    @server.tool()
    def create_branch(path: str, name: str) -> dict:
        """Create a local branch from HEAD and switch to it."""
        return session.mutate(path, lambda mutator: mutator.create_local_branch(name))

    @server.tool()
    def delete_branch(path: str, name: str) -> dict:
        """Delete a merged local branch."""
        return session.mutate(path, lambda mutator: mutator.delete_local_branch(name))

    @server.tool()
    def publish_branch(path: str, name: str) -> dict:
        """Push a local branch to origin and track it."""
        return session.mutate(path, lambda mutator: mutator.publish(name))

    @server.tool()
    def push_changes(path: str, branch: str) -> dict:
        """Push ``branch`` to origin."""
        return session.mutate(path, lambda mutator: mutator.push(branch))

    @server.tool()
    def pull_changes(path: str) -> dict:
        """Pull the current branch from its upstream."""
        return session.mutate(path, lambda mutator: mutator.pull())

    @server.tool()
    def fetch_repository(path: str) -> dict:
        """Fetch from the default remote."""
        return session.mutate(path, lambda mutator: mutator.fetch())

    @server.tool()
    def set_remote(path: str, url: str) -> dict:
        """Add or re-target the ``origin`` remote, then fetch from it."""
        return session.mutate(path, lambda mutator: mutator.set_remote(url))

    @server.tool()
    def stage_files(path: str, paths: List[str]) -> dict:
        """
        Stage files for the next commit.

        Args:
            path: Project folder inside a git working copy
            paths: Paths relative to the repository root
        """
        return session.mutate(path, lambda mutator: mutator.stage(paths))

    @server.tool()
    def unstage_files(path: str, paths: List[str]) -> dict:
        """Remove files from the index, keeping working-tree changes."""
        return session.mutate(path, lambda mutator: mutator.unstage(paths))

    @server.tool()
    def commit_changes(path: str, message: str) -> dict:
        """Commit the staged changes with ``message``."""
        return session.mutate(path, lambda mutator: mutator.commit(message))

    @server.tool()
    def init_repository(path: str) -> dict:
        """Create a repository at ``path`` with an empty initial commit."""
        return session.init_repository(path)

    @server.tool()
    def clone_repository(path: str, remote_url: str) -> dict:
        """Clone ``remote_url`` into the empty or missing folder ``path``."""
        return session.clone(path, remote_url)

    @server.tool()
    def commit_resources(path: str, commit_hash: str) -> dict:
        """
        Read the resource files stored at a commit.

        Kustomization files and Helm chart, values and template files are
        left out.
        """
        return session.resources(path, commit_hash)

    init_logger = logging.getLogger('vcsync.init')
    init_logger.info("MCP tools registered successfully")
    return session


def initialize_server(server_config: Optional[Config] = None) -> FastMCP:
    """Initialize MCP server with stdio transport for local-only operation."""
    try:
        if server_config is None:
            server_config = load_configuration()
        validation_issues = validate_configuration(server_config)

        setup_logging(server_config)
        init_logger = logging.getLogger('vcsync.init')

        if validation_issues:
            for issue in validation_issues:
                if issue.startswith("ERROR:"):
                    init_logger.error(issue[7:])
                elif issue.startswith("WARNING:"):
                    init_logger.warning(issue[9:])

            error_count = sum(1 for issue in validation_issues if issue.startswith("ERROR:"))
            if error_count > 0:
                init_logger.critical(f"Server startup failed due to {error_count} configuration error(s)")
                sys.exit(1)

        init_logger.info("Configuration loaded successfully")

        init_logger.info("Initializing MCP server with stdio transport")
        server = FastMCP(
            "vcsync Repository State",
            log_level=server_config.log_level.upper()
        )

        init_logger.info("Registering MCP tools")
        register_tools(server, server_config)

        init_logger.info("vcsync MCP server initialized successfully")
        return server

    except Exception as e:
        if 'init_logger' not in locals():
            logging.basicConfig(level=logging.ERROR)
            init_logger = logging.getLogger('vcsync.init')

        init_logger.critical(f"Server initialization failed: {e}", exc_info=True)
        raise


def main():
    """Main entry point for the vcsync server with stdio transport."""
    startup_logger = None

    try:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        startup_logger = logging.getLogger('vcsync.startup')

        startup_logger.info("=" * 60)
        startup_logger.info("vcsync Repository State MCP Server")
        startup_logger.info("Version: 1.0.0")
        startup_logger.info("=" * 60)

        python_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
        if sys.version_info < (3, 10):
            startup_logger.error(f"Python 3.10+ required, found {python_version}")
            sys.exit(1)

        startup_logger.info(f"Python version: {python_version}")

        server = initialize_server()

        startup_logger.info("Server startup completed, ready to accept MCP connections via stdio")
        server.run(transport="stdio")

    except KeyboardInterrupt:
        if startup_logger:
            startup_logger.info("Server stopped by user (Ctrl+C)")
        else:
            print("\nServer stopped by user", file=sys.stderr)
    except SystemExit:
        raise
    except Exception as e:
        if startup_logger:
            startup_logger.critical(f"Server failed to start: {e}", exc_info=True)
        else:
            print(f"CRITICAL: Server failed to start: {e}", file=sys.stderr)
        sys.exit(1)
