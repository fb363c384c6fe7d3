import os
import json
from typing import List, Any, Dict
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable to control CLI output mode
# İzin verilen değerler: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "READING_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def print_friends_result(friends: List[Dict[str, Any]]) -> None:
    """Arkadaş listesini mevcut çıktı moduna göre yazdır.
    - plain: 'ID - Ad' satırları, veya 'No friends yet.'
    - json: JSON dizisi
    - rich: Rich tablosu
    """
    mode = get_output_mode()

    if not friends:
        print("No friends yet.")
        return

    if mode == "json":
        print(json.dumps(friends, ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="👥 Friends", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Name", style="white")
        for f in friends:
            table.add_row(str(f.get("id", "")), f.get("full_name", ""))
        _console.print(table)
    else:
        for f in friends:
            print(f"{f.get('id', '')} - {f.get('full_name', '')}")

def print_invitation_result(invitation: Dict[str, Any]) -> None:
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps(invitation, ensure_ascii=False))
    elif mode == "rich":
        content = (
            f"[bold]ID:[/] {invitation.get('id')}\n"
            f"[bold]Token:[/] {invitation.get('token')}\n"
            f"[bold]Link:[/] {invitation.get('link')}"
        )
        _console.print(Panel.fit(content, title="✉️  Invitation", border_style="blue"))
    else:
        print(f"Invitation created: id={invitation.get('id')}")
        print(f"Link: {invitation.get('link')}")
