"""Markdown logger for game events."""

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..engine.words import WordPair


class MarkdownLogger:
    """Writes game events to markdown files."""

    def __init__(self, base_dir: str = "games"):
        """Initialize the logger.

        Args:
            base_dir: Base directory for game logs.
        """
        self.base_dir = Path(base_dir)
        self.game_dir: Optional[Path] = None
        self.game_id: Optional[str] = None

    def start_game(self, game_id: Optional[str] = None) -> Path:
        """Start logging a new game.

        Args:
            game_id: Optional game identifier. If not provided, uses timestamp.

        Returns:
            Path to the game directory.
        """
        if game_id is None:
            timestamp = datetime.now().strftime("%Y-%m-%d_%H%M%S_%f")
            game_id = f"game_{timestamp}"

        self.game_id = game_id
        self.game_dir = self.base_dir / game_id
        self.game_dir.mkdir(parents=True, exist_ok=True)

        self._write_game_header()

        return self.game_dir

    @property
    def game_file(self) -> Path:
        if self.game_dir is None:
            raise RuntimeError("start_game() must be called before logging events")
        return self.game_dir / "game_state.md"

    def _append(self, text: str) -> None:
        with open(self.game_file, "a", encoding="utf-8") as f:
            f.write(text)

    def _write_game_header(self) -> None:
        """Write the initial game state file header."""
        with open(self.game_file, "w", encoding="utf-8") as f:
            f.write(f"# Undercover Game - {self.game_id}\n\n")
            f.write(f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n\n")
            f.write("---\n\n")

    def log_setup(
        self,
        players: list[dict],
        role_assignments: dict[str, str],
        word_pair: "WordPair",
    ) -> None:
        """Log game setup information.

        Args:
            players: List of player info dicts (name, avatar).
            role_assignments: Mapping of player names to roles.
            word_pair: The pair dealt for the game.
        """
        lines = [
            "## Players\n\n",
            "| Player | Avatar | Role (Hidden) |\n",
            "|--------|--------|---------------|\n",
        ]
        for p in players:
            role = role_assignments.get(p["name"], "Unknown")
            lines.append(f"| {p['name']} | {p['avatar']} | {role} |\n")
        lines.append("\n## Words\n\n")
        lines.append(f"- Category: {word_pair.category}\n")
        lines.append(f"- Crew: **{word_pair.civilian}**\n")
        lines.append(f"- Undercover: **{word_pair.undercover}**\n")
        lines.append("\n---\n\n")
        self._append("".join(lines))

    def log_round_start(self, round_number: int, word_pair: Optional["WordPair"] = None) -> None:
        """Log the start of a discussion round.

        Args:
            round_number: Round being started (1, 2, 3...).
            word_pair: New pair, if words were redrawn for this round.
        """
        text = f"## Round {round_number}\n\n"
        if word_pair is not None:
            text += (
                f"*New words ({word_pair.category}): crew **{word_pair.civilian}**, "
                f"undercover **{word_pair.undercover}***\n\n"
            )
        self._append(text)

    def log_vote(
        self,
        round_number: int,
        votes: dict[str, str],
        eliminated: Optional[str],
        tie_break: bool = False,
    ) -> None:
        """Log voting results.

        Args:
            round_number: Round the vote belongs to.
            votes: Mapping of voter to voted-for, by name.
            eliminated: Name of the player voted out.
            tie_break: Whether the result came from a random tie-break.
        """
        votes_dir = self.game_file.parent / "votes"
        votes_dir.mkdir(exist_ok=True)

        filename = f"round_{round_number}.md"
        filepath = votes_dir / filename

        # Count votes
        vote_counts: dict[str, list[str]] = {}
        for voter, target in votes.items():
            vote_counts.setdefault(target, []).append(voter)

        with open(filepath, "w", encoding="utf-8") as f:
            f.write(f"# Voting - Round {round_number}\n\n")

            f.write("## Individual Votes\n\n")
            f.write("| Voter | Voted For |\n")
            f.write("|-------|----------|\n")
            for voter, target in sorted(votes.items()):
                f.write(f"| {voter} | {target} |\n")

            f.write("\n## Vote Totals\n\n")
            for target, voters in sorted(vote_counts.items(), key=lambda x: -len(x[1])):
                f.write(f"- **{target}**: {len(voters)} votes ({', '.join(voters)})\n")

            f.write("\n## Result\n\n")
            if eliminated:
                f.write(f"**{eliminated}** was voted out.\n")
                if tie_break:
                    f.write("*The vote was tied and settled by a random draw.*\n")
            else:
                f.write("*No elimination.*\n")

        text = "### Vote Result\n\n"
        if eliminated:
            text += f"**{eliminated}** was voted out"
            text += " after a tie-break.\n\n" if tie_break else ".\n\n"
        else:
            text += "*No elimination*\n\n"
        text += f"*See [votes/{filename}](./votes/{filename}) for the full ballot*\n\n"
        self._append(text)

    def log_elimination(self, player_name: str, role: str, round_number: int) -> None:
        """Log a player being eliminated.

        Args:
            player_name: Who was eliminated.
            role: Their role (revealed on elimination).
            round_number: When they were eliminated.
        """
        self._append(
            "### Elimination\n\n"
            f"**{player_name}** was eliminated in round {round_number}.\n"
            f"*They were {role}.*\n\n"
        )

    def log_mr_white_guess(self, player_name: str, guess: Optional[str], correct: bool) -> None:
        """Log Mr. White's guess at the crew word.

        Args:
            player_name: The eliminated Mr. White.
            guess: What they guessed, None if they skipped.
            correct: Whether the guess matched.
        """
        if guess is None:
            outcome = f"**{player_name}** skipped the guess."
        elif correct:
            outcome = f"**{player_name}** guessed \"{guess}\" - correct!"
        else:
            outcome = f"**{player_name}** guessed \"{guess}\" - wrong."
        self._append(f"### Mr. White Guess\n\n{outcome}\n\n")

    def log_game_end(
        self,
        winner: str,
        reason: str,
        surviving_players: list[dict],
        all_players: list[dict],
    ) -> None:
        """Log the game ending.

        Args:
            winner: Winning side ("crew", "imposters" or "mr_white").
            reason: Why they won.
            surviving_players: Players still alive.
            all_players: All players with roles revealed.
        """
        lines = ["---\n\n", "# GAME OVER\n\n"]
        lines.append(f"## Winner: {winner.replace('_', ' ').upper()}\n\n")
        lines.append(f"{reason}\n\n")

        lines.append("## Survivors\n\n")
        if surviving_players:
            for p in surviving_players:
                lines.append(f"- {p['name']} ({p['role']})\n")
        else:
            lines.append("*No survivors*\n")

        lines.append("\n## All Players\n\n")
        lines.append("| Player | Role | Team | Word | Survived |\n")
        lines.append("|--------|------|------|------|----------|\n")
        for p in all_players:
            survived = "Yes" if p.get("alive", False) else "No"
            word = p.get("word") or "-"
            lines.append(f"| {p['name']} | {p['role']} | {p['team']} | {word} | {survived} |\n")

        lines.append(f"\n\nEnded: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
        self._append("".join(lines))
