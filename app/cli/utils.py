from rich.console import Console
from rich.theme import Theme

custom_theme = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "green",
    "header": "bold magenta"
})

console = Console(theme=custom_theme)


def print_banner(text: str):
    """Print a styled banner."""
    console.print(f"[header]{'='*60}[/header]")
    console.print(f"[header]{text.center(60)}[/header]")
    console.print(f"[header]{'='*60}[/header]")


def confirm_typed(phrase: str, message: str) -> bool:
    """Ask the operator to type ``phrase`` back before a destructive change."""
    console.print(f"[warning]{message}[/warning]")
    response = console.input(f"[warning]Type {phrase} to continue: [/warning]").strip()
    return response == phrase
