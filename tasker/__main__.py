"""Entry point for Tasker.

This module allows running Tasker as a module:
    python -m tasker add "Pay rent @tomorrow !high #bills"

Or as an installed command:
    tasker ls --list today
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from tasker.config import Config
from tasker.database import init_database
from tasker.logging_config import get_logger, setup_logging
from tasker.models import ALL_LISTS, FilterOptions, Priority, SortDirection, SortField, SortOptions, Task
from tasker.services.app_state_service import AppStateService
from tasker.services.export_service import ExportOptions, ExportService
from tasker.services.input_parser import suggest
from tasker.services.list_service import ListService
from tasker.services.query_engine import visible
from tasker.services.tag_service import TagService
from tasker.services.task_service import TaskService, TaskServiceError
from tasker.utils.datetime_utils import format_date

logger = get_logger(__name__)

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tasker", description="Personal task manager")
    parser.add_argument("--verbose", action="store_true", help="Log to the console as well")
    commands = parser.add_subparsers(dest="command", required=True)

    add = commands.add_parser("add", help="Add a task using quick-add syntax")
    add.add_argument("text", help='e.g. "Pay rent @tomorrow !high #bills ~home"')
    add.add_argument("--parent", help="Add as a subtask of this task id")

    ls = commands.add_parser("ls", help="Show tasks")
    ls.add_argument("--list", dest="list_id", help=f"List id, 'today', 'upcoming' or '{ALL_LISTS}'")
    ls.add_argument("--search", help="Match title or description")
    ls.add_argument("--priority", choices=[p.value for p in Priority])
    ls.add_argument("--tag", action="append", default=[], help="Tag id (repeatable)")
    state = ls.add_mutually_exclusive_group()
    state.add_argument("--completed", action="store_true")
    state.add_argument("--pending", action="store_true")
    ls.add_argument("--sort", choices=[f.value for f in SortField])
    ls.add_argument("--desc", action="store_true", help="Sort descending")

    done = commands.add_parser("done", help="Toggle completion of a task")
    done.add_argument("task_id")

    rm = commands.add_parser("rm", help="Delete a task and its subtasks")
    rm.add_argument("task_id")

    commands.add_parser("lists", help="Show lists")
    commands.add_parser("tags", help="Show tags")

    hint = commands.add_parser("suggest", help="Show completions for the last token")
    hint.add_argument("text")

    export = commands.add_parser("export", help="Export tasks")
    export.add_argument("--format", choices=["markdown", "csv", "json"], default="markdown")
    export.add_argument("--output", type=Path, help="Write to file instead of stdout")
    export.add_argument("--list", dest="list_id")
    export.add_argument("--no-completed", action="store_true")
    export.add_argument("--no-subtasks", action="store_true")

    load = commands.add_parser("import", help="Replace all data from a JSON export")
    load.add_argument("path", type=Path)

    return parser


def render_tasks(tasks: List[Task], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("")
    table.add_column("Task")
    table.add_column("Priority")
    table.add_column("Due")
    table.add_column("Tags")
    for task in tasks:
        table.add_row(
            task.id[:8],
            "✅" if task.is_completed else "⬜",
            escape(task.title) + (f" \\[{task.progress_string}]" if task.progress_string else ""),
            "" if task.priority == Priority.NONE else task.priority.value,
            format_date(task.due_date),
            " ".join(task.tags),
        )
        for subtask in task.subtasks:
            table.add_row(
                subtask.id[:8],
                "✅" if subtask.is_completed else "⬜",
                f"  ↳ {escape(subtask.title)}",
                "" if subtask.priority == Priority.NONE else subtask.priority.value,
                format_date(subtask.due_date),
                " ".join(subtask.tags),
            )
    return table


async def resolve_task_id(service: TaskService, prefix: str) -> str:
    """Expand a short id prefix as printed by 'ls' to a full task id."""
    matches = [task.id for task in await service.get_all_tasks() if task.id.startswith(prefix)]
    if len(matches) != 1:
        raise ValueError(f"'{prefix}' matches {len(matches)} tasks")
    return matches[0]


async def run(args: argparse.Namespace, config: Config) -> int:
    db_manager = await init_database(config.get_storage_config()["database_url"])
    try:
        async with db_manager.get_session() as session:
            lists = await ListService(session).ensure_default_lists()
            tags = await TagService(session).ensure_default_tags()
            task_service = TaskService(session)
            state_service = AppStateService(session, config.get_defaults_config())
            state = await state_service.get_state()

            if args.command == "add":
                if args.parent:
                    parent_id = await resolve_task_id(task_service, args.parent)
                    task = await task_service.create_subtask(parent_id, args.text)
                else:
                    task = await task_service.create_task_from_input(args.text, state.selected_list_id)
                console.print(f"Added [bold]{escape(task.title)}[/bold] ({task.id[:8]}) to {task.list_id}")

            elif args.command == "ls":
                if args.list_id:
                    if args.list_id != ALL_LISTS and args.list_id not in {task_list.id for task_list in lists}:
                        raise ValueError(f"Unknown list '{args.list_id}'")
                    state = await state_service.select_list(args.list_id)
                filter = FilterOptions(
                    completed=True if args.completed else False if args.pending else None,
                    priority=args.priority,
                    tags=args.tag,
                    search=args.search,
                )
                sort = state.sort
                if args.sort:
                    sort = SortOptions(
                        field=args.sort,
                        direction=SortDirection.DESC if args.desc else SortDirection.ASC,
                    )
                    state = await state_service.set_sort(sort)
                tasks = visible(await task_service.get_all_tasks(), state.selected_list_id, filter, sort)
                console.print(render_tasks(tasks, f"{state.selected_list_id} ({len(tasks)})"))

            elif args.command == "done":
                task = await task_service.toggle_completion(await resolve_task_id(task_service, args.task_id))
                console.print(f"{'Completed' if task.is_completed else 'Reopened'} [bold]{escape(task.title)}[/bold]")

            elif args.command == "rm":
                await task_service.delete_task(await resolve_task_id(task_service, args.task_id))
                console.print("Deleted")

            elif args.command == "lists":
                table = Table(title="Lists")
                for column in ("ID", "Name", "Icon", "Smart"):
                    table.add_column(column)
                for task_list in lists:
                    table.add_row(task_list.id, task_list.name, task_list.icon or "",
                                  "yes" if task_list.is_smart else "")
                console.print(table)

            elif args.command == "tags":
                table = Table(title="Tags")
                table.add_column("ID")
                table.add_column("Name")
                for tag in tags:
                    table.add_row(tag.id, tag.name)
                console.print(table)

            elif args.command == "suggest":
                suggestion = suggest(args.text, lists, tags)
                if suggestion is None:
                    console.print("No suggestions")
                else:
                    console.print(f"{suggestion.type.value}: {', '.join(suggestion.candidates)}")

            elif args.command == "export":
                service = ExportService(session)
                if args.format == "json":
                    content = (await service.export_state()).model_dump_json(indent=2)
                else:
                    options = ExportOptions(
                        include_completed=not args.no_completed,
                        include_subtasks=not args.no_subtasks,
                        list_id=args.list_id,
                    )
                    content = await service.render_report(args.format, options)
                if args.output:
                    args.output.write_text(content, encoding="utf-8")
                    console.print(f"Wrote {args.output}")
                else:
                    console.out(content, end="")

            elif args.command == "import":
                data = json.loads(args.path.read_text(encoding="utf-8"))
                imported = await ExportService(session).import_state(data)
                console.print(f"Imported {len(imported.tasks)} tasks")

        return 0
    finally:
        await db_manager.close()


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for Tasker.

    Args:
        args: Command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if args is None:
        args = sys.argv[1:]

    parsed = build_parser().parse_args(args)
    setup_logging(use_console_handler=parsed.verbose)

    try:
        return asyncio.run(run(parsed, Config()))
    except KeyboardInterrupt:
        logger.info("Tasker interrupted by user (Ctrl+C)")
        return 0
    except (ValueError, TaskServiceError, OSError) as e:
        logger.warning(f"Command failed: {e}")
        console.print(f"[red]Error:[/red] {e}")
        return 1
    except Exception:
        logger.error("Error running Tasker", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
