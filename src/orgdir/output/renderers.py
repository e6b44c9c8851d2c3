"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO).  The caller
extracts the rendered text via ``get_output(console)``.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.  Every
successful result carries its payload under ``data["result"]``.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from orgdir.output.console import create_console, get_output

if TYPE_CHECKING:
    from rich.console import Console

    from orgdir.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich.

    Returns plain text (no ANSI) when Rich detects no terminal,
    which is the case inside Click's CliRunner and piped output.
    """
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
        if verbose:
            _render_meta(console, result)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode: ids only where there are any."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op} — {msg}"

    payload = result.data.get("result")
    items = payload if isinstance(payload, list) else [payload]
    ids = [_extract_id(item) for item in items]
    ids = [i for i in ids if i]
    return "\n".join(ids) if ids else f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _extract_id(item: Any) -> str:
    if isinstance(item, list) and item:
        return _extract_id(item[-1])  # search path: the matched area is last
    if isinstance(item, dict):
        for key in ("area_id", "collection_id", "contact_id"):
            val = item.get(key)
            if val is not None:
                return str(val)
    return ""


def _status_line(console: Console, result: ServiceResult) -> None:
    label = Text("OK", style="org.ok")
    op = Text(f"  {result.op}", style="org.op")
    console.print(Text.assemble(label, op))


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="org.key")
    if key.endswith("_id"):
        v = Text(str(value), style="org.id")
    elif key == "name":
        v = Text(str(value), style="org.name")
    else:
        v = Text(str(value))
    console.print(Text.assemble(k, v))


def _render_meta(console: Console, result: ServiceResult) -> None:
    if not result.meta:
        return
    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        console.print(f"    {k}: {v}")


def _area_label(area: dict[str, Any]) -> str:
    label = f"[org.name]{area.get('name', '?')}[/org.name] [org.id]#{area.get('area_id', '?')}[/org.id]"
    contact = area.get("matched_contact")
    if contact:
        position = contact.get("info", {}).get("position", "")
        label += f" [org.position]({position})[/org.position]"
    if area.get("descendant_contact_count"):
        label += f" [org.count]{area['descendant_contact_count']} contacts below[/org.count]"
    return label


def _contact_name(contact: dict[str, Any]) -> str:
    info = contact.get("info", {})
    name = " ".join(part for part in (info.get("first_name"), info.get("last_name")) if part)
    return name or "(unnamed)"


def _contact_table(contacts: list[dict[str, Any]], *, verbose: bool = False) -> Table:
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("ID", style="org.id", no_wrap=True)
    table.add_column("Name", style="org.name")
    table.add_column("Position", style="org.position")
    table.add_column("Phone")
    table.add_column("Email")
    if verbose:
        table.add_column("URL", style="dim")
    for contact in contacts:
        info = contact.get("info", {})
        row = [
            str(contact.get("contact_id", "")),
            _contact_name(contact),
            str(info.get("position", "")),
            str(info.get("phone", "")),
            str(info.get("email", "")),
        ]
        if verbose:
            row.append(str(contact.get("url", "")))
        table.add_row(*row)
    return table


def _collection_label(entry: dict[str, Any], note: str = "") -> str:
    label = f"Collection [org.id]#{entry.get('collection_id', '?')}[/org.id]"
    if entry.get("primary"):
        label += " [org.primary]primary[/org.primary]"
    if note:
        label += f" [org.note]{note}[/org.note]"
    return label


def _add_collection_branch(parent: Tree, entry: dict[str, Any], note: str = "") -> None:
    branch = parent.add(_collection_label(entry, note))
    for contact in entry.get("contacts", []):
        position = contact.get("info", {}).get("position", "")
        suffix = f" [org.position]{position}[/org.position]" if position else ""
        branch.add(f"[org.id]{contact.get('contact_id')}[/org.id] {_contact_name(contact)}{suffix}")
    for link in entry.get("successors", []):
        _add_collection_branch(branch, link.get("collection", {}), link.get("note", ""))


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    label = Text("ERROR", style="org.error")
    op = Text(f"  {result.op}", style="org.op")
    console.print(Text.assemble(label, op, " — ", msg))

    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}")


# ── Area renderers ────────────────────────────────────────────────────


def _render_area(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Single area (or None, e.g. the former parent of a detached orphan)."""
    _status_line(console, result)
    area = result.data.get("result")
    if area is None:
        console.print("  (none)")
        return
    for key in ("area_id", "name", "note"):
        if key in area:
            _field(console, key, area[key])
    if area.get("is_root"):
        _field(console, "root", True)


def _render_area_list(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    areas = result.data.get("result") or []
    if not areas:
        console.print("No areas.")
        return
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("ID", style="org.id", no_wrap=True)
    table.add_column("Name", style="org.name")
    table.add_column("Note", style="org.note")
    for area in areas:
        table.add_row(str(area.get("area_id", "")), str(area.get("name", "")), str(area.get("note", "")))
    console.print(table)


def _render_subtree(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    node = result.data.get("result") or {}

    def attach(branch: Tree, sub: dict[str, Any]) -> None:
        for child in sub.get("children", []):
            attach(branch.add(_area_label(child.get("area", {}))), child)

    tree = Tree(_area_label(node.get("area", {})))
    attach(tree, node)
    console.print(tree)


def _render_path(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    steps = result.data.get("result") or []
    if not steps:
        console.print("No path found.")
        return
    console.print(" → ".join(_area_label(step) for step in steps))


def _render_search(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    paths = result.data.get("result") or []
    if not paths:
        console.print("No matches.")
        return
    for rank, path in enumerate(paths, start=1):
        console.print(f"[dim]{rank:>3}.[/dim] " + " → ".join(_area_label(step) for step in path))


def _render_count(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    _field(console, "contacts", result.data.get("result", 0))


# ── Collection / contact renderers ────────────────────────────────────


def _render_collection(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    collection = result.data.get("result") or {}
    _field(console, "collection_id", collection.get("collection_id"))
    _field(console, "primary", bool(collection.get("primary")))


def _render_collection_list(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    collections = result.data.get("result") or []
    if not collections:
        console.print("No collections.")
        return
    for collection in collections:
        console.print(_collection_label(collection))


def _render_collection_forest(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """contacts_by_area, collection detail, and the batch variant keyed by area id."""
    payload = result.data.get("result")
    if isinstance(payload, dict) and "collection_id" in payload:
        forests = {"": [payload]}
    elif isinstance(payload, dict):
        forests = {f"Area #{key}": value for key, value in payload.items()}
    else:
        forests = {"": payload or []}

    for title, entries in forests.items():
        tree = Tree(title or "Collections")
        for entry in entries:
            _add_collection_branch(tree, entry)
        if not entries:
            tree.add("[dim](no collections)[/dim]")
        console.print(tree)


def _render_contact(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    contact = result.data.get("result") or {}
    if "contact_id" not in contact:
        for key, value in contact.items():
            _field(console, key, value)
        return
    _field(console, "contact_id", contact["contact_id"])
    for key, value in contact.get("info", {}).items():
        _field(console, key, value)
    if contact.get("url"):
        _field(console, "url", contact["url"])


def _render_contact_list(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    contacts = result.data.get("result") or []
    if not contacts:
        console.print("No contacts.")
        return
    console.print(_contact_table(contacts, verbose=verbose))


# ── Check renderer ────────────────────────────────────────────────────


def _render_check(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render check results with issues grouped by category."""
    report = result.data.get("result") or {}
    issues = report.get("issues", [])

    if not issues:
        console.print("[org.ok]OK[/org.ok]  No issues found.")
        return

    severity_styles = {"error": "org.error", "warning": "org.warning"}

    by_category: dict[str, list[dict[str, Any]]] = {}
    for issue in issues:
        by_category.setdefault(str(issue.get("category", "unknown")), []).append(issue)

    for cat, cat_issues in by_category.items():
        console.print(f"\n[bold]{cat}[/bold]")
        for issue in cat_issues:
            sev = str(issue.get("severity", "warning"))
            style = severity_styles.get(sev, "")
            prefix = f"[{style}]{sev}[/{style}]" if style else sev
            entity = issue.get("entity_id")
            eid = f" [{entity}]" if entity is not None else ""
            console.print(f"  {prefix}{eid}: {issue.get('message', '')}")

    errors = sum(1 for i in issues if i.get("severity") == "error")
    console.print(f"\n{errors} errors, {len(issues) - errors} warnings")


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    payload = result.data.get("result")
    if isinstance(payload, dict):
        for key, value in payload.items():
            _field(console, key, _json.dumps(value, separators=(",", ":")) if isinstance(value, (dict, list)) else value)
    elif payload is not None:
        _field(console, "result", _json.dumps(payload, separators=(",", ":")))


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    # Areas
    "init": _render_area,
    "area": _render_area,
    "parent": _render_area,
    "descend": _render_area,
    "insert_child": _render_area,
    "update_area": _render_area,
    "reparent": _render_area,
    "detach_area": _render_area,
    "remove_area": _render_area,
    "bulk_import": _render_area,
    "children": _render_area_list,
    "orphans": _render_area_list,
    "subtree": _render_subtree,
    "path": _render_path,
    "search": _render_search,
    "descendant_contact_count": _render_count,
    # Collections
    "new_collection": _render_collection,
    "toggle_primary": _render_collection,
    "split": _render_collection,
    "merge": _render_collection,
    "add_successor": _render_collection,
    "remove_successor": _render_collection,
    "head_collections": _render_collection_list,
    "successors": _render_collection_list,
    "collection_detail": _render_collection_forest,
    "contacts_by_area": _render_collection_forest,
    "batch_contacts_by_area": _render_collection_forest,
    # Contacts
    "contact": _render_contact,
    "new_contact": _render_contact,
    "update_contact": _render_contact,
    "detach_contact": _render_contact,
    "remove_contact": _render_contact,
    "contacts": _render_contact_list,
    "contact_search": _render_contact_list,
    # Check
    "check": _render_check,
}
