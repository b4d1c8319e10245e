#!/usr/bin/env python3
"""Interactive chat CLI for the Orbit Gmail and Calendar assistant."""

import json
import sys

import httpx
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Confirm, Prompt

from orbit.constants import APPROVAL
from orbit.rendering import render_tool_output


class ChatCLI:
    """Interactive chat interface for the Orbit service."""

    def __init__(self, base_url: str = "http://localhost:8000"):
        """Initialize chat CLI."""
        self.base_url = base_url
        self.console = Console()
        self.client = httpx.Client(timeout=120.0)

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold blue]🪐 Orbit - Gmail & Calendar Assistant[/bold blue]\n"
                "Type your messages to chat with the assistant.\n"
                "Commands: /help, /clear, /status, /connect, /quit",
                border_style="blue",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]❌ Cannot connect to the service at {self.base_url}.[/red]")
            return
        self.console.print("[green]✅ Connected to Orbit[/green]")

        if not self._check_model_key():
            self.console.print("[yellow]⚠️ ANTHROPIC_API_KEY is not set on the server; chat is unavailable.[/yellow]")

        self._show_status()

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")
                command = user_input.strip().lower()

                if command in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif command == "/help":
                    self._show_help()
                    continue
                elif command == "/clear":
                    self.client.delete(f"{self.base_url}/chat/messages")
                    self.console.print("[yellow]🔄 Conversation cleared[/yellow]")
                    continue
                elif command == "/status":
                    self._show_status()
                    continue
                elif command == "/connect":
                    self.console.print(f"Open this URL in your browser: {self.base_url}/oauth/google/connect")
                    continue
                elif command == "":
                    continue

                self._run_turn(user_input)

        except KeyboardInterrupt:
            self.client.post(f"{self.base_url}/chat/stop")
        finally:
            self.console.print("\n[yellow]👋 Goodbye![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        """Test connection to the service."""
        try:
            response = self.client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def _check_model_key(self) -> bool:
        response = self.client.get(f"{self.base_url}/check-model-key")
        return response.status_code == 200 and response.json().get("success", False)

    def _show_status(self) -> None:
        status = self.client.get(f"{self.base_url}/oauth/google/status").json()
        if status.get("connected"):
            expired = " [dim](token expired, will refresh)[/dim]" if status.get("expired") else ""
            self.console.print(f"[green]📧 Google account: {status.get('email')}[/green]{expired}")
        else:
            self.console.print("[yellow]📧 Google account not connected. Use /connect.[/yellow]")

    def _run_turn(self, message: str | None) -> None:
        """Send a message (or resume) and print the streamed turn."""
        pending: list[dict] = []
        text = ""
        payload = {"message": message} if message is not None else {}

        try:
            with self.client.stream("POST", f"{self.base_url}/chat", json=payload) as response:
                if response.status_code != 200:
                    response.read()
                    self.console.print(f"[red]❌ API Error: {response.status_code} - {response.text}[/red]")
                    return

                for line in response.iter_lines():
                    if not line:
                        continue
                    event = json.loads(line)
                    kind = event.get("type")

                    if kind == "text-delta":
                        text += event["text"]
                    elif kind == "tool-call":
                        self.console.print(f"[dim]🔧 {event['tool_name']}({json.dumps(event['args'])})[/dim]")
                        if event.get("requires_confirmation"):
                            pending.append(event)
                    elif kind == "tool-result":
                        self._display_tool_result(event)
                    elif kind == "error":
                        self.console.print(f"[red]❌ {event['message']}[/red]")
                    elif kind == "finish" and event["reason"] == "max_steps":
                        self.console.print("[yellow]⚠️ Stopped after the maximum number of steps[/yellow]")
        except httpx.HTTPError as e:
            self.console.print(f"[red]❌ Connection error: {e}[/red]")
            return

        if text.strip():
            self._display_response(text)

        if pending:
            self._confirm(pending)

    def _confirm(self, pending: list[dict]) -> None:
        for call in pending:
            approved = Confirm.ask(
                f"[bold yellow]Run {call['tool_name']} with {json.dumps(call['args'])}?[/bold yellow]"
            )
            self.client.post(
                f"{self.base_url}/chat/tool-result",
                json={"tool_call_id": call["tool_call_id"], "result": APPROVAL.YES if approved else APPROVAL.NO},
            )
        self._run_turn(None)

    def _display_tool_result(self, event: dict) -> None:
        result = event.get("result") or {}
        renderable = render_tool_output(result.get("payload")) if result.get("kind") == "rendered" else None
        if renderable is not None:
            self.console.print(renderable)
        elif result.get("is_error"):
            self.console.print(f"[red]{result.get('text', '')}[/red]")

    def _display_response(self, text: str) -> None:
        """Display assistant response with nice formatting."""
        self.console.print(
            Panel(
                Markdown(text),
                title="[bold green]🪐 Orbit[/bold green]",
                border_style="green",
                padding=(1, 2),
            )
        )

    def _show_help(self) -> None:
        """Show help information."""
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /clear - Clear the conversation history
• /status - Show the Google account connection
• /connect - Show the URL that connects a Google account
• /quit or /exit - Exit the chat

[bold]Things to try:[/bold]
1. "Show me my latest 5 emails"
2. "Summarize my unread emails"
3. "What's on my calendar today?"
4. "Schedule a meeting with alex@example.com tomorrow at 2pm"
5. "Remind me to follow up with the team in 10 minutes"

[bold]Tips:[/bold]
• Email listings include message IDs you can refer to later
• Deleting moves emails to trash unless you ask for permanent deletion
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]❓ Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"

    chat = ChatCLI(base_url)
    chat.start()


if __name__ == "__main__":
    main()
