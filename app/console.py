#!/usr/bin/env python3
"""
Operator console for the data exchange API.

Wraps ``DataExchangeClient`` with rich output: preview and edit a column
mapping, submit an import and follow it, run an export, or push an
enterprise agreement document through rate extraction.
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .client import DataExchangeClient, DataExchangeClientError
from .core.config import settings
from .core.logging_config import configure_logging
from .domain.errors import MappingValidationError, PreviewParseError, UnknownEntityTypeError
from .domain.exports.columns import ColumnSelection
from .domain.file_types import FileType, detect_file_type
from .domain.imports.mapping_editor import MappingEditor
from .domain.imports.processors.csv_processor import process_excel
from .utils.serialization import make_json_safe


class ExchangeConsole:
    """Interactive console around one API endpoint."""

    def __init__(self, client: DataExchangeClient, console: Optional[Console] = None):
        self.client = client
        self.console = console or Console()

    def show_entities(self) -> None:
        table = Table(title="Entity Types")
        table.add_column("Entity", style="cyan", no_wrap=True)
        table.add_column("Label", style="white")
        table.add_column("Key", style="dim")
        table.add_column("Fields", justify="right")
        for entity in self.client.list_entities():
            table.add_row(
                entity["entity_type"],
                entity["label"],
                ", ".join(entity["natural_key"]),
                str(len(entity["fields"])),
            )
        self.console.print(table)

    def show_mapping(self, editor: MappingEditor) -> None:
        table = Table(title=f"Column Mapping → {editor.entity_type.value}")
        table.add_column("Column", style="cyan", no_wrap=True)
        table.add_column("Field", style="green")
        table.add_column("Required", justify="center")
        table.add_column("Transform", style="magenta")
        for mapping in editor.mappings:
            table.add_row(
                mapping.source_column,
                mapping.target_field or "[dim](skip)[/dim]",
                "✓" if mapping.required else "",
                mapping.transform or "",
            )
        self.console.print(table)

    def edit_mapping(self, editor: MappingEditor) -> None:
        """
        Edit loop. Commands: ``<column>=<field>``, ``skip <column>``,
        ``required <column>``, ``transform <column> <tokens>``, ``auto``, ``done``.
        """
        while True:
            self.show_mapping(editor)
            command = Prompt.ask("[bold]mapping[/bold]", default="done").strip()
            if command == "done":
                return
            try:
                if command == "auto":
                    editor.auto_map_remaining()
                elif command.startswith("skip "):
                    editor.skip(command[5:].strip())
                elif command.startswith("required "):
                    column = command[9:].strip()
                    current = next(m for m in editor.mappings if m.source_column == column)
                    editor.set_required(column, not current.required)
                elif command.startswith("transform "):
                    column, _, tokens = command[10:].strip().partition(" ")
                    editor.set_transform(column, tokens)
                elif "=" in command:
                    column, _, field = command.partition("=")
                    editor.set_target(column.strip(), field.strip())
                else:
                    self.console.print("[yellow]Unrecognised command[/yellow]")
            except (KeyError, StopIteration, MappingValidationError) as e:
                self.console.print(f"[red]{e}[/red]")

    def run_import(
        self,
        path: Path,
        entity_type: str,
        *,
        update_existing: bool,
        skip_errors: bool,
        interactive: bool,
    ) -> int:
        content = path.read_bytes()
        file_type = detect_file_type(path.name)
        if file_type is None:
            self.console.print(f"[red]❌ Unsupported file type: {path.name}[/red]")
            return 1

        if file_type == FileType.XLSX:
            # Spreadsheets have no server preview; read the header locally.
            try:
                columns, records = process_excel(content)
            except PreviewParseError as e:
                self.console.print(f"[red]❌ {e}[/red]")
                return 1
            sample_rows = make_json_safe(records[: settings.preview_sample_rows])
        else:
            preview = self.client.preview(content, path.name, entity_type, file_type.value)
            columns = preview["preview"]["columns"]
            sample_rows = preview["preview"]["sample_rows"]

        sample = Table(title=f"Preview of {path.name}")
        for column in columns:
            sample.add_column(column)
        for row in sample_rows:
            sample.add_row(*[str(row.get(column, "")) for column in columns])
        self.console.print(sample)

        editor = MappingEditor(entity_type, columns)
        if interactive:
            self.edit_mapping(editor)
        else:
            self.show_mapping(editor)

        try:
            mappings = editor.confirm()
        except MappingValidationError as e:
            self.console.print(f"[red]❌ {e}[/red]")
            return 1
        if interactive and not Confirm.ask("Start import?", default=True):
            return 1

        with Progress(TextColumn("{task.description}"), BarColumn(), TextColumn("{task.percentage:>3.0f}%"),
                      console=self.console) as progress:
            upload = progress.add_task("Uploading", total=100)
            job = self.client.submit_import(
                content,
                path.name,
                entity_type,
                [mapping.model_dump() for mapping in mappings],
                file_type=file_type.value,
                update_existing=update_existing,
                skip_errors=skip_errors,
                on_progress=lambda percent: progress.update(upload, completed=percent),
            )
            rows = progress.add_task("Processing rows", total=100)
            job = self.client.wait_for_job(
                job["id"],
                on_update=lambda current: progress.update(rows, completed=current.get("progress", 0)),
            )

        return self.report_import(job)

    def report_import(self, job: dict) -> int:
        ok = job["status"] == "completed"
        lines = [
            f"Rows: {job['processed_rows']}/{job['total_rows']}",
            f"Errors: {job['error_rows']}",
        ]
        lines.extend(job.get("error_preview") or [])
        self.console.print(Panel(
            "\n".join(lines),
            title=f"Import {job['status']}",
            border_style="green" if ok else "red",
        ))
        return 0 if ok else 1

    def edit_columns(self, selection: ColumnSelection) -> None:
        """
        Toggle loop. Commands: ``<column>`` flips one column, ``all`` flips
        every column, ``done``.
        """
        while True:
            self.console.print(
                "  ".join(
                    f"[green]✓ {column}[/green]" if column in selection.selected else f"[dim]· {column}[/dim]"
                    for column in selection.available
                )
            )
            command = Prompt.ask("[bold]columns[/bold]", default="done").strip()
            if command == "done":
                return
            if command == "all":
                selection.toggle_all()
                continue
            try:
                selection.toggle(command)
            except KeyError as e:
                self.console.print(f"[red]{e}[/red]")

    def run_export(self, entity_type: str, columns: Optional[str], file_type: str,
                   filter_expression: Optional[str], output: Optional[Path], *, interactive: bool = False) -> int:
        try:
            selection = ColumnSelection(entity_type)
            if columns:
                selection.toggle_all()
                requested = [column.strip() for column in columns.split(",") if column.strip()]
                for column in dict.fromkeys(requested):
                    selection.toggle(column)
        except (UnknownEntityTypeError, KeyError) as e:
            self.console.print(f"[red]❌ {e}[/red]")
            return 1
        if interactive:
            self.edit_columns(selection)

        selected = selection.selected
        if not selected:
            self.console.print("[red]❌ Select at least one column[/red]")
            return 1

        job = self.client.submit_export(entity_type, selected, file_type=file_type,
                                        filter_expression=filter_expression)
        with self.console.status("Exporting..."):
            job = self.client.wait_for_job(job["id"], kind="export")
        if job["status"] != "completed":
            self.console.print(f"[red]❌ Export failed: {job.get('error_message')}[/red]")
            return 1

        target = output or Path(job["file_name"])
        target.write_bytes(self.client.download_export(job["id"]))
        self.console.print(f"[green]✅ {job['total_rows']} rows written to {target}[/green]")
        return 0

    def run_agreement(self, path: Path, name: str, code: str, organization: str, start_date: str) -> int:
        draft = self.client.create_agreement_draft()
        self.client.upload_agreement_document(draft["draft_id"], path.read_bytes(), path.name)
        with self.console.status("Extracting rates..."):
            draft = self.client.extract_rates(draft["draft_id"])

        table = Table(title="Extracted Rates")
        table.add_column("Classification", style="cyan")
        table.add_column("Rate", justify="right")
        table.add_column("Effective")
        table.add_column("Notes", style="dim")
        for rate in draft["rates"]:
            table.add_row(rate["classification"], str(rate["rate"]), rate["effective_date"], rate.get("notes") or "")
        self.console.print(table)

        if not Confirm.ask("Save agreement with these rates?", default=True):
            return 1
        result = self.client.save_agreement(draft["draft_id"], {
            "name": name,
            "code": code,
            "organization": organization,
            "start_date": start_date,
        })
        for warning in result.get("warnings", []):
            self.console.print(f"[yellow]⚠ {warning}[/yellow]")
        self.console.print(f"[green]✅ Saved agreement {result['agreement']['id']}[/green]")
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Data Exchange Console - bulk import/export and agreement rate extraction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s entities
  %(prog)s import apprentices.csv --entity apprentices --skip-errors
  %(prog)s export --entity apprentices --filter "status=active" --format xlsx
        """
    )
    parser.add_argument('--url', default="http://localhost:8000", help='API base URL')
    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('entities', help='List entity types')

    import_parser = subparsers.add_parser('import', help='Import a csv/json/xlsx file')
    import_parser.add_argument('file', type=Path)
    import_parser.add_argument('--entity', required=True)
    import_parser.add_argument('--update-existing', action='store_true')
    import_parser.add_argument('--skip-errors', action='store_true')
    import_parser.add_argument('--yes', action='store_true', help='Accept the inferred mapping without editing')

    export_parser = subparsers.add_parser('export', help='Export records of one entity type')
    export_parser.add_argument('--entity', required=True)
    export_parser.add_argument('--columns', help='Comma-separated fields (default: all)')
    export_parser.add_argument('--format', choices=['csv', 'json', 'xlsx'], default='csv')
    export_parser.add_argument('--filter', dest='filter_expression')
    export_parser.add_argument('--output', type=Path)
    export_parser.add_argument('--pick-columns', action='store_true', help='Toggle columns interactively before exporting')

    agreement_parser = subparsers.add_parser('agreement', help='Extract and save agreement pay rates')
    agreement_parser.add_argument('file', type=Path)
    agreement_parser.add_argument('--name', required=True)
    agreement_parser.add_argument('--code', required=True)
    agreement_parser.add_argument('--organization', required=True)
    agreement_parser.add_argument('--start-date', required=True)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.log_level)
    exchange = ExchangeConsole(DataExchangeClient(args.url))

    try:
        if args.command == 'entities':
            exchange.show_entities()
            return 0
        if args.command == 'import':
            return exchange.run_import(
                args.file,
                args.entity,
                update_existing=args.update_existing,
                skip_errors=args.skip_errors,
                interactive=not args.yes,
            )
        if args.command == 'export':
            return exchange.run_export(args.entity, args.columns, args.format, args.filter_expression, args.output,
                                       interactive=args.pick_columns)
        return exchange.run_agreement(args.file, args.name, args.code, args.organization, args.start_date)
    except DataExchangeClientError as e:
        exchange.console.print(f"[red]❌ {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
