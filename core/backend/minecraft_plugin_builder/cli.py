"""
Command-Line Interface

Entry point for the pluggy CLI tool.
"""

import argparse
import logging
import sys
import time
import traceback
from pathlib import Path
from typing import Dict, Optional

from . import __version__
from .api_clients import MavenClient, ModrinthAPIClient, SnapshotRepositoryClient
from .builder import PackageAssembler
from .config import CLI_NAME, ProjectPaths
from .config_loader import load_settings
from .eclipse import refresh_eclipse
from .errors import PluggyError
from .project import load_project
from .resolver import DependencyResolver
from .scaffold import init_project
from .specifiers import RegistryRef, parse_dependency

logger = logging.getLogger(__name__)


class ConsoleFormatter(logging.Formatter):
    """Prefixes messages with a level symbol, optionally colored"""

    COLORS = {
        "DEBUG": "\033[2m",     # Dim
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",    # Red
        "CRITICAL": "\033[31m",
        "RESET": "\033[0m",
    }
    SYMBOLS = {
        "DEBUG": "◌ ",
        "WARNING": "⚠ ",
        "ERROR": "✖ ",
        "CRITICAL": "✖ ",
    }

    def __init__(self, color: bool = True):
        super().__init__("%(message)s")
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        symbol = self.SYMBOLS.get(record.levelname, "")
        if not self.color or record.levelname not in self.COLORS:
            return f"{symbol}{message}"
        color = self.COLORS[record.levelname]
        reset = self.COLORS["RESET"]
        if record.levelname == "DEBUG":
            return f"{color}{symbol}{message}{reset}"
        return f"{color}{symbol}{reset}{message}"


def setup_logging(verbose: bool = False, color: bool = True, log_file: Optional[str] = None):
    """Configure logging for CLI"""
    console = logging.StreamHandler()
    console.setFormatter(ConsoleFormatter(color=color and sys.stderr.isatty()))
    handlers = [console]

    if log_file:
        file_handler = logging.FileHandler(Path(log_file).expanduser())
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        handlers=handlers,
        force=True,
    )
    # urllib3 is chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return logging.getLogger(__name__)


def prompt(message: str, default: Optional[str] = None) -> str:
    """Ask for a value, returning the default on empty input"""
    suffix = f" [{default}]" if default else ""
    answer = input(f"? {message}{suffix}: ").strip()
    return answer or default or ""


def confirm(message: str) -> bool:
    return input(f"? {message} [y/N]: ").strip().lower() in ("y", "yes")


def project_paths(args: argparse.Namespace, root: Optional[Path] = None) -> ProjectPaths:
    """Project layout from --config-file or the working directory"""
    config_file = Path(args.config_file) if args.config_file else None
    if root is None:
        root = config_file.parent if config_file and config_file.is_absolute() else Path.cwd()
    return ProjectPaths.for_root(root, config_file)


def make_resolver(project, paths: ProjectPaths, settings: Dict) -> DependencyResolver:
    return DependencyResolver(
        project,
        paths,
        settings,
        modrinth=ModrinthAPIClient(settings),
        snapshots=SnapshotRepositoryClient(settings),
        maven=MavenClient(settings),
    )


def cmd_init(args: argparse.Namespace, settings: Dict) -> int:
    """Create a new project"""
    root = Path(args.path).resolve() if args.path else Path.cwd()
    paths = project_paths(args, root=root)
    logger.debug(f"Setting project root directory to {paths.root}")

    options = {
        'name': args.name,
        'version': args.project_version,
        'main': args.main,
        'description': args.description,
    }

    if not args.yes:
        if paths.config_file.exists():
            if not confirm("A project already exists in this directory. Do you want to overwrite it?"):
                logger.info("Project initialization cancelled.")
                return 0
        elif not confirm("Do you want to initialize a new project?"):
            logger.info("Project initialization cancelled.")
            return 0

        options['name'] = options['name'] or prompt("Enter the project name", paths.root.name)
        options['version'] = options['version'] or prompt("Enter the project version", "0.1.0")
        options['main'] = options['main'] or prompt("Enter the main class (e.g., com.example.Main)", "com.example.Main")
        options['description'] = options['description'] or prompt(
            "Enter the project description", "A Minecraft plugin project using Modrinth."
        )

    project = init_project(paths, options, snapshots=SnapshotRepositoryClient(settings))
    refresh_eclipse(project, paths, make_resolver(project, paths, settings))
    return 0


def cmd_build(args: argparse.Namespace, settings: Dict) -> int:
    """Install dependencies and package the plugin"""
    paths = project_paths(args)
    project = load_project(paths)

    logger.info(f'Building project "{project.name}"...')
    logger.info("Installing dependencies...")
    resolver = make_resolver(project, paths, settings)
    install_result = resolver.install_dependencies(force=args.force, force_platform=args.force)

    PackageAssembler(project, paths, settings).build(install_result)
    logger.info("✓ Build completed successfully!")
    return 0


def cmd_install(args: argparse.Namespace, settings: Dict) -> int:
    """Add a dependency and/or install all declared dependencies"""
    paths = project_paths(args)
    project = load_project(paths)
    resolver = make_resolver(project, paths, settings)

    if args.target:
        logger.info(f"Installing {args.target}...")
        resolver.add_dependency(args.target, force=args.force, beta=args.beta)
        # Adding one plugin shouldn't re-pull the platform jar
        logger.info(f'Installing project dependencies "{project.name}"...')
        resolver.install_dependencies(force=args.force, force_platform=False)
    else:
        logger.info(f'Installing project dependencies "{project.name}"...')
        resolver.install_dependencies(force=args.force, force_platform=args.force)

    refresh_eclipse(project, paths, resolver)
    logger.info(f'✓ Successfully installed dependencies for project "{project.name}"!')
    return 0


def cmd_remove(args: argparse.Namespace, settings: Dict) -> int:
    """Remove a dependency from the project"""
    paths = project_paths(args)
    project = load_project(paths)

    if args.name not in project.dependencies:
        logger.error(f'Plugin "{args.name}" is not installed in this project.')
        return 1

    if not args.yes:
        value = project.dependencies[args.name]
        display = f"v{value}" if isinstance(parse_dependency(args.name, value), RegistryRef) else f"({value})"
        if not confirm(f'Are you sure you want to remove "{args.name}" {display}?'):
            logger.info("Plugin removal cancelled.")
            return 0

    logger.info(f'Removing plugin "{args.name}" from project...')
    resolver = make_resolver(project, paths, settings)
    resolver.remove_dependency(args.name)
    refresh_eclipse(project, paths, resolver)

    logger.info(f'✓ Plugin "{args.name}" has been removed from the project.')
    return 0


def cmd_info(args: argparse.Namespace, settings: Dict) -> int:
    """Show a Modrinth project"""
    name, _, version_number = args.plugin.partition("@")
    client = ModrinthAPIClient(settings)
    modrinth_project = client.get_project(name)

    logger.info("")
    logger.info(f"{modrinth_project.title} ({name})")
    logger.info(modrinth_project.description)
    logger.info("")
    logger.info(f"Downloads: {modrinth_project.downloads:,}")
    logger.info(f"Game Versions: {', '.join(modrinth_project.game_versions)}")
    logger.info(f"Available Versions: {len(modrinth_project.versions)}")

    if version_number:
        # Version ids are accepted too
        version = modrinth_project.find_version(version_number) or client.get_version(name, version_number)
        logger.info("")
        logger.info(f"Version {version_number}:")
        logger.info(f"  Type: {version.version_type}")
        logger.info(f"  Loaders: {', '.join(version.loaders)}")
        logger.info(f"  Game Versions: {', '.join(version.game_versions)}")
        logger.info(f"  Files: {len(version.files)}")
        if version.files:
            primary = version.primary_file or version.files[0]
            logger.info(f"  Primary File: {primary.filename} ({primary.size / 1024 / 1024:.2f} MB)")
    else:
        logger.info("")
        logger.info("Latest Versions:")
        for version in modrinth_project.versions[:5]:
            logger.info(f"  {version.version_number} ({version.version_type}) - MC {', '.join(version.game_versions)}")
        if len(modrinth_project.versions) > 5:
            logger.info(f"  ... and {len(modrinth_project.versions) - 5} more versions")
    logger.info("")
    return 0


def cmd_search(args: argparse.Namespace, settings: Dict) -> int:
    """Search Modrinth for plugins"""
    start = time.perf_counter()
    results = ModrinthAPIClient(settings).search(args.query, limit=args.limit, offset=args.offset)
    elapsed = int((time.perf_counter() - start) * 1000)

    if not results:
        logger.warning(f'No results found for query "{args.query}"')
        return 0

    logger.info(f'Found {len(results)} results for query "{args.query}" in {elapsed}ms')
    logger.info("")
    for hit in results:
        description = "\n  ".join(hit.description.splitlines())
        logger.info(f"{hit.title} ({hit.project_id})")
        logger.info(f"  {description}")
        logger.info(f"  Author: {hit.author} | Downloads: {hit.downloads} | Follows: {hit.follows}")
        logger.info(f"  Game Versions: {', '.join(hit.versions)}")
        logger.info("")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=CLI_NAME,
        description=f"Pluggy v{__version__} - A CLI for developing Minecraft plugins using Modrinth",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create a project in ./my_plugin
  %(prog)s init my_plugin --name my_plugin --main com.example.Main -y

  # Add the latest compatible version of a plugin
  %(prog)s install worldedit

  # Add a specific version, a Maven library or a local jar
  %(prog)s install worldedit@7.3.0
  %(prog)s install maven:net.kyori:adventure-api@4.17.0
  %(prog)s install ./libs/worldedit.jar

  # Build dist/<name>-<version>.jar
  %(prog)s build
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--config-file", help="Path to the project file (default: ./plugin.json)")
    parser.add_argument("--settings", type=Path, help="Path to a settings file (overrides default search paths)")
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")

    sub = parser.add_subparsers(dest="command", metavar="<command>")
    sub.required = True

    p_init = sub.add_parser("init", help="Create a new project")
    p_init.add_argument("path", nargs="?", help="Project directory (default: current directory)")
    p_init.add_argument("--name", help="The name of the project")
    p_init.add_argument("--version", dest="project_version", help="The version of the project")
    p_init.add_argument("--main", help="The main class of the project")
    p_init.add_argument("--description", help="A description of the project")
    p_init.add_argument("-y", "--yes", action="store_true", help="Automatically confirm prompts")
    p_init.set_defaults(func=cmd_init)

    p_build = sub.add_parser("build", help="Install dependencies and build the plugin jar")
    p_build.add_argument("-f", "--force", action="store_true", help="Force re-download of all dependencies")
    p_build.set_defaults(func=cmd_build)

    p_install = sub.add_parser("install", help="Install dependencies for the project")
    p_install.add_argument("target", nargs="?", help="plugin[@version], maven:group:artifact@version or a jar path")
    p_install.add_argument("-f", "--force", action="store_true",
                           help="Force install dependencies, ignoring version and compatibility conflicts")
    p_install.add_argument("--beta", action="store_true", help="Include beta and alpha versions in the search")
    p_install.set_defaults(func=cmd_install)

    p_remove = sub.add_parser("remove", help="Remove a plugin from the project")
    p_remove.add_argument("name", help="Dependency name")
    p_remove.add_argument("-y", "--yes", action="store_true", help="Automatically confirm prompts")
    p_remove.set_defaults(func=cmd_remove)

    p_info = sub.add_parser("info", help="Show information about a plugin")
    p_info.add_argument("plugin", help="plugin[@version]")
    p_info.set_defaults(func=cmd_info)

    p_search = sub.add_parser("search", help="Search for plugins")
    p_search.add_argument("query", help="The search query")
    p_search.add_argument("--limit", type=int, default=3, help="The number of results to return (default: 3)")
    p_search.add_argument("--offset", type=int, default=0, help="The offset for pagination (default: 0)")
    p_search.set_defaults(func=cmd_search)

    return parser


def main(argv=None) -> int:
    """Main CLI entry point"""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # usage errors are reported failures; --help and --version are not
        return 1 if e.code else 0

    setup_logging(verbose=args.verbose, color=not args.no_color)

    try:
        settings = load_settings(args.settings)
        if settings.get('log_file'):
            setup_logging(verbose=args.verbose, color=not args.no_color, log_file=settings['log_file'])
        return args.func(args, settings)

    except KeyboardInterrupt:
        logger.info("\n\nInterrupted by user")
        return 130
    except PluggyError as e:
        logger.error(str(e))
        if args.verbose:
            logger.debug(traceback.format_exc())
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
