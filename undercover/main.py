"""Main entry point for Undercover: a pass-and-play terminal front end."""

import sys
from dataclasses import asdict
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .communication.markdown_logger import MarkdownLogger
from .config import AppConfig, load_config
from .engine.errors import InvalidActionError, InvalidSettingsError
from .engine.game import GameResult, Player, RoundEngine
from .engine.phases import GamePhase
from .engine.roles import CIVILIAN, MR_WHITE, UNDERCOVER, get_role
from .engine.settings import (
    GameSettings,
    adjust_mr_white_count,
    adjust_player_count,
    adjust_undercover_count,
)
from .engine.words import load_word_bank


# Load environment variables
load_dotenv()

console = Console()

ROLE_STYLES = {
    CIVILIAN: ("CIVILIAN", "green"),
    UNDERCOVER: ("UNDERCOVER", "dark_orange"),
    MR_WHITE: ("MR. WHITE", "bold white on grey23"),
}


def build_engine(config: AppConfig) -> RoundEngine:
    """Create an engine from configuration."""
    logger = MarkdownLogger(base_dir=config.log_dir) if config.logging_enabled else None
    return RoundEngine(
        word_bank=load_word_bank(config.words_path),
        settings=config.defaults,
        logger=logger,
        min_players=config.min_players,
        max_players=config.max_players,
        redraw_words_each_round=config.redraw_words_each_round,
    )


def wait(message: str = "Press Enter to continue...") -> None:
    Prompt.ask(f"[dim]{message}[/dim]", default="", show_default=False)


def display_welcome():
    """Display welcome message."""
    console.print(Panel.fit(
        "[bold magenta]UNDERCOVER[/bold magenta]\n"
        "[dim]Find the imposters hiding among you[/dim]",
        border_style="magenta",
    ))
    console.print()


def display_settings(settings: GameSettings):
    """Display the lobby settings."""
    table = Table(title="Game Settings", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="bold")
    table.add_row("(p) Players", str(settings.player_count))
    table.add_row("(u) Undercover", str(settings.undercover_count))
    table.add_row("(w) Mr. White", str(settings.mr_white_count))
    table.add_row("(c) Category", settings.selected_category or "Random")
    console.print(table)

    chips = [f"[green]{settings.civilian_count} Crew[/green]"]
    if settings.undercover_count:
        chips.append(f"[dark_orange]{settings.undercover_count} Undercover[/dark_orange]")
    if settings.mr_white_count:
        chips.append(f"{settings.mr_white_count} Mr. White")
    console.print("  ".join(chips))
    console.print()


def run_lobby(engine: RoundEngine, config: AppConfig) -> bool:
    """Edit settings until the group starts or quits.

    Returns:
        True to start registration, False to quit.
    """
    while True:
        settings = engine.settings
        display_settings(settings)
        choice = Prompt.ask(
            "Adjust with p+/p-/u+/u-/w+/w-, (c)ategory, (s)tart or (q)uit",
            choices=["p+", "p-", "u+", "u-", "w+", "w-", "c", "s", "q"],
            show_choices=False,
        )

        if choice == "q":
            return False
        if choice == "s":
            if not settings.is_startable:
                console.print("[red]Need at least one imposter and two civilians.[/red]")
                continue
            engine.set_phase(GamePhase.REGISTRATION)
            return True

        if choice == "c":
            options = ["random"] + engine.available_categories
            picked = Prompt.ask("Category", choices=options, default="random")
            updated = settings.merged({"selected_category": None if picked == "random" else picked})
        else:
            delta = 1 if choice.endswith("+") else -1
            if choice.startswith("p"):
                updated = adjust_player_count(settings, delta, config.min_players, config.max_players)
            elif choice.startswith("u"):
                updated = adjust_undercover_count(settings, delta)
            else:
                updated = adjust_mr_white_count(settings, delta)

        try:
            engine.update_settings(asdict(updated))
        except InvalidSettingsError as e:
            console.print(f"[red]{escape(str(e))}[/red]")


def ask_avatar(engine: RoundEngine) -> str:
    """Let the player pick one of the icons nobody has taken."""
    icons = engine.available_avatars
    table = Table(show_header=False, box=None)
    for start in range(0, len(icons), 4):
        row = [f"[cyan]{i + 1:>2}[/cyan] {icon}" for i, icon in enumerate(icons[start:start + 4], start)]
        table.add_row(*row)
    console.print(table)
    index = Prompt.ask("Avatar", choices=[str(i + 1) for i in range(len(icons))], show_choices=False)
    return icons[int(index) - 1]


def run_registration(engine: RoundEngine, config: AppConfig) -> None:
    """Collect every player's name and avatar."""
    total = engine.settings.player_count
    while len(engine.players) < total:
        console.print(f"\n[bold]Player {len(engine.players) + 1} of {total}[/bold]")
        name = Prompt.ask("Name").strip()
        if not name:
            console.print("[red]Enter a name.[/red]")
            continue
        if len(name) > config.name_max_length:
            console.print(f"[red]Names are limited to {config.name_max_length} characters.[/red]")
            continue

        avatar = ask_avatar(engine)
        try:
            engine.register_player(name, avatar)
        except InvalidActionError as e:
            console.print(f"[red]{escape(str(e))}[/red]")


def display_role_card(player: Player):
    """Show a player their secret role and word."""
    label, style = ROLE_STYLES[player.role]
    role = get_role(player.role)
    if player.word:
        body = f"Your word is\n\n[bold]{player.word}[/bold]"
    else:
        body = "You have no word.\nListen closely and bluff."
    console.print(Panel(
        f"[{style}]{label}[/{style}]\n\n{body}\n\n[dim]{role.description}[/dim]",
        title=f"{player.name} ({player.avatar_icon})",
        border_style="magenta",
    ))


def run_reveal(engine: RoundEngine) -> None:
    """Pass the device so each player privately sees their card."""
    while engine.current_player_index < len(engine.players):
        player = engine.players[engine.current_player_index]
        console.clear()
        console.print(Panel.fit(f"Pass the device to [bold cyan]{player.name}[/bold cyan]"))
        wait("Press Enter when only you can see the screen...")
        display_role_card(player)
        wait("Memorise it, then press Enter to hide...")
        console.clear()
        engine.next_player()
    engine.finish_registration()


def display_players(engine: RoundEngine):
    """Display who is still in the game."""
    table = Table(title=f"Round {engine.round_number}", show_header=True, header_style="bold magenta")
    table.add_column("Player", style="cyan")
    table.add_column("Avatar")
    table.add_column("Status")
    for player in engine.players:
        if player.is_alive:
            status = "[green]In the game[/green]"
        else:
            label, style = ROLE_STYLES[player.role]
            status = f"[red]Out[/red] ([{style}]{label}[/{style}])"
        table.add_row(player.name, player.avatar_icon, status)
    console.print(table)
    console.print()


def run_discussion(engine: RoundEngine) -> None:
    console.clear()
    display_players(engine)
    console.print("[yellow]Describe your word without giving it away. Discuss![/yellow]")
    wait("Press Enter when everybody is ready to vote...")
    engine.set_phase(GamePhase.VOTING)


def run_voting(engine: RoundEngine) -> None:
    """Collect one secret vote from each alive player, then eliminate."""
    while engine.next_voter is not None:
        voter = engine.next_voter
        console.clear()
        console.print(Panel.fit(f"Pass the device to [bold cyan]{voter.name}[/bold cyan]"))
        wait()
        candidates = [p for p in engine.alive_players if p.id != voter.id]
        for i, candidate in enumerate(candidates, 1):
            console.print(f"  [cyan]{i}[/cyan] {candidate.name} ({candidate.avatar_icon})")
        index = Prompt.ask(
            "Vote to eliminate",
            choices=[str(i) for i in range(1, len(candidates) + 1)],
            show_choices=False,
        )
        engine.cast_vote(voter.id, candidates[int(index) - 1].id)

    console.clear()
    eliminated = engine.tally_votes()
    if eliminated is not None:
        engine.eliminate_player(eliminated)


def run_elimination(engine: RoundEngine) -> None:
    player = engine.get_player(engine.eliminated_player_id)
    label, style = ROLE_STYLES[player.role]
    console.print(Panel(
        f"[bold]{player.name}[/bold] has been eliminated!\n\nThey were [{style}]{label}[/{style}]",
        border_style="red",
    ))
    wait()
    engine.acknowledge_elimination()


def run_mr_white_guess(engine: RoundEngine) -> None:
    player = engine.get_player(engine.eliminated_player_id)
    console.print(Panel(
        f"[bold]{player.name}[/bold] was Mr. White!\n\n"
        "One chance to steal the win: guess the crew's word.",
        border_style="white",
    ))
    guess = Prompt.ask("Guess (leave empty to skip)", default="", show_default=False)
    if not guess.strip():
        engine.skip_mr_white_guess()
        return

    if engine.handle_mr_white_guess(guess):
        return
    console.print("[red]Wrong guess![/red]")
    wait()
    engine.acknowledge_elimination()


def display_results(engine: RoundEngine, result: GameResult):
    """Display game results."""
    console.print()

    if result.winner == "crew":
        console.print(Panel(
            f"[bold green]THE CREW WINS![/bold green]\n{result.reason}",
            border_style="green",
        ))
    elif result.winner == "imposters":
        console.print(Panel(
            f"[bold dark_orange]THE IMPOSTERS WIN![/bold dark_orange]\n{result.reason}",
            border_style="dark_orange",
        ))
    else:
        console.print(Panel(
            f"[bold]MR. WHITE WINS![/bold]\n{result.reason}",
            border_style="white",
        ))

    word_pair = engine.current_word_pair
    if word_pair:
        console.print(
            f"Crew word: [green]{word_pair.civilian}[/green]   "
            f"Undercover word: [dark_orange]{word_pair.undercover}[/dark_orange]"
        )
    console.print()

    # Final standings
    table = Table(title="Final Standings", show_header=True, header_style="bold")
    table.add_column("Player", style="cyan")
    table.add_column("Role", style="magenta")
    table.add_column("Word")
    table.add_column("Status", style="green")

    for player in engine.players:
        status = "[green]Survived[/green]" if player.is_alive else "[red]Eliminated[/red]"
        label, style = ROLE_STYLES[player.role]
        table.add_row(player.name, f"[{style}]{label}[/{style}]", player.word or "-", status)

    console.print(table)
    console.print()

    if engine.logger and engine.logger.game_dir:
        console.print(f"[dim]Game log saved to: {engine.logger.game_dir}[/dim]")


PHASE_HANDLERS = {
    GamePhase.DISCUSSION: run_discussion,
    GamePhase.VOTING: run_voting,
    GamePhase.ELIMINATION: run_elimination,
    GamePhase.MR_WHITE_GUESS: run_mr_white_guess,
}


def play_game(engine: RoundEngine, config: AppConfig) -> Optional[GameResult]:
    """Run one game from the lobby to game over.

    Returns:
        The result, or None if the group quit in the lobby.
    """
    if not run_lobby(engine, config):
        return None
    run_registration(engine, config)
    run_reveal(engine)

    while engine.phase != GamePhase.GAME_OVER:
        PHASE_HANDLERS[engine.phase](engine)

    display_results(engine, engine.game_result)
    return engine.game_result


def main(config_path: Optional[str] = None):
    """Main entry point."""
    display_welcome()

    config_path = config_path or (sys.argv[1] if len(sys.argv) > 1 else None)
    try:
        config = load_config(config_path)
        engine = build_engine(config)
    except ValueError as e:
        console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        sys.exit(1)

    try:
        while play_game(engine, config):
            if not Confirm.ask("Play again?", default=True):
                break
            # Keep the group's settings for the rematch
            settings = engine.settings
            engine.reset_game()
            engine.update_settings(asdict(settings))
    except KeyboardInterrupt:
        console.print("\n[yellow]Game interrupted by user.[/yellow]")
        sys.exit(0)
    except Exception as e:
        console.print(f"\n[red]Error during game: {escape(str(e))}[/red]")
        raise


def run():
    """Entry point for the CLI."""
    main()


if __name__ == "__main__":
    run()
