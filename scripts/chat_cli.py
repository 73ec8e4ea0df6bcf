#!/usr/bin/env python3
"""Interactive chat CLI for testing the study assistant service."""

import os
import sys

import httpx
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt


class ChatCLI:
    """Interactive chat interface for the study assistant service."""

    def __init__(self, base_url: str = "http://localhost:8000", user_id: str = "dev-student"):
        """Initialize chat CLI."""
        self.base_url = base_url
        self.user_id = user_id
        self.conversation_id: str | None = None
        self.google_token: str | None = os.getenv("GOOGLE_ACCESS_TOKEN")
        self.console = Console()
        self.client = httpx.Client(timeout=120.0, headers={"Authorization": f"Bearer {user_id}"})

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold blue]📚 Plexy Study Assistant - Interactive Chat[/bold blue]\n"
                f"Chatting as [bold]{self.user_id}[/bold].\n"
                "Commands: /help, /new, /token, /quit",
                border_style="blue",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]❌ Cannot connect to the service at {self.base_url}.[/red]")
            return

        self.console.print("[green]✅ Connected to study assistant service[/green]")
        if self.google_token:
            self.console.print("[dim]Using Google access token from GOOGLE_ACCESS_TOKEN[/dim]")
        else:
            self._show_token_status()

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")
                command = user_input.strip().lower()

                if command in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif command == "/help":
                    self._show_help()
                    continue
                elif command == "/new":
                    self.conversation_id = None
                    self.console.print("[yellow]🔄 Started a new conversation[/yellow]")
                    continue
                elif command == "/token":
                    self._show_token_status()
                    continue
                elif command == "":
                    continue

                response = self._send_message(user_input)
                if response:
                    self._display_response(response)

        except KeyboardInterrupt:
            pass
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

    def _send_message(self, message: str) -> dict | None:
        """Send message to the assistant."""
        payload: dict[str, str] = {"message": message}
        if self.conversation_id:
            payload["conversation_id"] = self.conversation_id
        if self.google_token:
            payload["google_token"] = self.google_token

        try:
            with self.console.status("[dim]💭 Thinking...[/dim]"):
                response = self.client.post(f"{self.base_url}/chat", json=payload)
        except httpx.HTTPError as e:
            self.console.print(f"[red]❌ Connection error: {e}[/red]")
            return None

        if response.status_code == 200:
            data = response.json()
            self.conversation_id = data.get("conversation_id")
            return data

        if response.status_code == 429:
            self.console.print(f"[yellow]⏳ {response.json().get('message', 'Rate limited')}[/yellow]")
        else:
            self.console.print(f"[red]❌ API Error: {response.status_code} - {response.text}[/red]")
        return None

    def _show_token_status(self) -> None:
        """Show whether a Google account is connected for this user."""
        try:
            response = self.client.post(f"{self.base_url}/google-token", json={"action": "get"})
        except httpx.HTTPError as e:
            self.console.print(f"[red]❌ Connection error: {e}[/red]")
            return

        if response.status_code == 200:
            expires_at = response.json().get("expires_at")
            self.console.print(f"[green]🔑 Google account connected (token expires {expires_at})[/green]")
        else:
            message = response.json().get("message") or response.json().get("error")
            self.console.print(f"[yellow]🔌 Google account not connected: {message}[/yellow]")

    def _display_response(self, response: dict) -> None:
        """Display assistant response with nice formatting."""
        assistant_text = response.get("message", "No response")

        self.console.print(
            Panel(
                Markdown(assistant_text),
                title="[bold green]🤖 Plexy[/bold green]",
                border_style="green",
                padding=(1, 2),
            )
        )

    def _show_help(self) -> None:
        """Show help information."""
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /new - Start a new conversation
• /token - Check the Google connection
• /quit or /exit - Exit the chat

[bold]Try asking:[/bold]
1. "What classes am I in?"
2. "What's due this week?"
3. "Help me with my stoicism essay"

[bold]Tips:[/bold]
• Set GOOGLE_ACCESS_TOKEN to pass a Google token with every message
• Without a connected account the assistant can still answer general questions
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]❓ Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"
    user_id = sys.argv[2] if len(sys.argv) > 2 else os.getenv("PLEXY_USER_ID", "dev-student")

    chat = ChatCLI(base_url, user_id)
    chat.start()


if __name__ == "__main__":
    main()
