"""CLI entry point for todoist-notes."""

import argparse
from pathlib import Path

from . import __version__
from .config import Settings
from .logging import setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="todoist-notes",
        description="Sync Markdown task notes with Todoist",
    )
    parser.add_argument(
        "--vault",
        type=Path,
        default=None,
        help="Path to the vault containing todoist-notes.yml (default: current directory)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (-v for INFO, -vv for DEBUG)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Path to write logs to file",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("generate", help="Write a default todoist-notes.yml and exit")
    subparsers.add_parser("test-connection", help="Check the Todoist API token")
    subparsers.add_parser("sync", help="Run one sync pass now")
    subparsers.add_parser("projects", help="List Todoist projects and sections")

    watch = subparsers.add_parser("watch", help="Sync on the configured interval")
    watch.add_argument(
        "--iterations",
        type=int,
        default=None,
        help="Stop after this many runs (default: run until interrupted)",
    )

    create = subparsers.add_parser("create", help="Create a task note")
    create.add_argument("title", help="Task title")
    create.add_argument("--description", default="", help="Note body")
    create.add_argument("--parent", default=None, help="Link to the parent task note")
    create.add_argument("--project", default=None, help="Todoist project name")
    create.add_argument("--section", default=None, help="Todoist section name")
    create.add_argument("--due", default=None, help="Due date (YYYY-MM-DD or free text)")
    create.add_argument("--recur", default=None, help="Recurrence, e.g. 'every monday'")
    create.add_argument(
        "--no-sync",
        dest="sync",
        action="store_false",
        help="Keep the note local only",
    )

    convert = subparsers.add_parser("convert", help="Convert a checklist line to a task note")
    convert.add_argument("note", type=Path, help="Note containing the checklist line")
    convert.add_argument("line", type=int, help="1-based line number")

    toggle = subparsers.add_parser("toggle", help="Mark a linked task note done or open")
    toggle.add_argument("link", help="Link to the task note, e.g. '[[Tasks/Pay rent]]'")
    state = toggle.add_mutually_exclusive_group(required=True)
    state.add_argument("--done", dest="done", action="store_true", help="Mark done")
    state.add_argument("--open", dest="done", action="store_false", help="Mark open")
    toggle.add_argument(
        "--source",
        type=Path,
        default=None,
        help="Note containing the link (resolves relative links)",
    )

    show = subparsers.add_parser("show", help="Show project, section and due of a task note")
    show.add_argument("link", help="Link to the task note")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    settings_kwargs: dict = {}
    if args.vault:
        settings_kwargs["vault_root"] = args.vault
    if args.verbose:
        settings_kwargs["verbose"] = args.verbose
    if args.log_file:
        settings_kwargs["log_file"] = args.log_file

    settings = Settings(**settings_kwargs)
    setup_logging(settings.verbose, settings.log_file)

    vault_root = settings.vault_root
    token_env_var = settings.token_env_var

    # Imported per command to keep startup light
    if args.command == "generate":
        from .cli.generate import run_generate

        exit_code = run_generate(vault_root)
    elif args.command == "test-connection":
        from .cli.sync import run_test_connection

        exit_code = run_test_connection(vault_root, token_env_var)
    elif args.command == "sync":
        from .cli.sync import run_sync

        exit_code = run_sync(vault_root, token_env_var)
    elif args.command == "watch":
        from .cli.sync import run_watch

        exit_code = run_watch(vault_root, token_env_var, iterations=args.iterations)
    elif args.command == "projects":
        from .cli.sync import run_projects

        exit_code = run_projects(vault_root, token_env_var)
    elif args.command == "create":
        from .cli.create import run_create

        exit_code = run_create(
            vault_root,
            args.title,
            description=args.description,
            parent=args.parent,
            project=args.project,
            section=args.section,
            due=args.due,
            recur=args.recur,
            sync=args.sync,
        )
    elif args.command == "convert":
        from .cli.create import run_convert

        exit_code = run_convert(vault_root, args.note, args.line)
    elif args.command == "toggle":
        from .cli.create import run_toggle

        exit_code = run_toggle(vault_root, args.link, args.done, source=args.source)
    else:
        from .cli.create import run_show

        exit_code = run_show(vault_root, args.link)

    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
