from klondike import Action, AddressKind, Klondike, KlondikeState, new_game, MIN_GAME_NUMBER
from klondike_log import to_log_text
import random
import argparse
import logging
import time
import multiprocessing as mp
from concurrent.futures import ProcessPoolExecutor
from pathlib import Path
import os
from typing import List, Tuple, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS = [5, 20, 10, 20, 1, 5, 40]


def action_category(action: Action) -> int:
    """
    Index of ``action`` in the weight list.

    0 draw, 1 waste to foundation, 2 waste to tableau, 3 tableau to foundation,
    4 foundation to tableau, 5 tableau to tableau, 6 flip.
    """
    source = action.source
    destination = action.destination
    if source.kind == AddressKind.DECK:
        return 0
    if destination is None:
        return 6
    to_foundation = destination.kind == AddressKind.FOUNDATION
    if source.kind == AddressKind.WASTE:
        return 1 if to_foundation else 2
    if source.kind == AddressKind.TABLEAU:
        return 3 if to_foundation else 5
    if source.kind == AddressKind.FOUNDATION and not to_foundation:
        return 4
    raise ValueError(f"Invalid action: {action}")


def sample_action(valid_actions: list[Action], rng: random.Random, params: list[int] = DEFAULT_WEIGHTS) -> Action:
    if len(valid_actions) == 0:
        msg = "No valid actions"
        raise ValueError(msg)

    if len(valid_actions) == 1:
        return valid_actions[0]

    weight_map: dict[Action, int] = {action: params[action_category(action)] for action in valid_actions}

    total = sum(weight_map.values())
    r = rng.uniform(0, total)
    upto = 0
    for item, weight in weight_map.items():
        if upto + weight >= r:
            return item
        upto += weight
    raise AssertionError


def play_game(game_number: Optional[int] = None, max_steps: int = 1000, seed: int = 0,
              verbose: bool = False, print_interval: int = 0) -> Tuple[bool, int, Klondike]:
    """
    Play a single game of Klondike solitaire using the greedy heuristic agent.

    Args:
        game_number: Deal to play (None = random deal)
        max_steps: Maximum number of steps before giving up
        seed: Seed for the agent's own choices, so a run can be repeated
        verbose: Whether to print game progress
        print_interval: Number of turns after which to print game state (0 = never print)

    Returns:
        Tuple of (win status, number of steps taken, final game)
    """
    game = new_game(game_number)
    rng = random.Random(seed)
    steps = 0

    # Keep track of seen states to avoid loops
    seen_states: Dict[str, int] = {}

    while steps < max_steps:
        # Check if game is won
        if game.state == KlondikeState.WON:
            if verbose:
                print(f"Game won in {steps} steps!")
            return True, steps, game

        # Get valid actions
        valid_actions = game.legal_actions()
        if not valid_actions:
            if verbose:
                print(f"No more valid actions after {steps} steps. Game lost.")
            return False, steps, game

        # Choose an action using the heuristic
        action = sample_action(valid_actions, rng)

        # Apply the action
        game.step(action)
        steps += 1

        # Print game state at specified intervals
        if print_interval > 0 and steps % print_interval == 0:
            render = game.render()
            print(f"\n=== Game {game.game_number} at step {steps} ===")
            print(f"Foundations filled: {sum(len(f) for f in game.foundations)}/52")
            print(f"Deck: {render.deck_size} cards remaining")
            print(f"Waste: {len(game.waste)} cards, showing {render.waste}")
            print("Foundations:", [f"0{'ABCD'[i]}: {card}" for i, card in enumerate(render.foundations)])
            print("Tableaus:")
            for i, tableau in enumerate(render.tableaus):
                visible_cards = [card for card in tableau if card is not None]
                hidden_count = len(tableau) - len(visible_cards)
                print(f"  {i+1}: {hidden_count} hidden, {visible_cards}")
            print("Last move:", game.history[-1] if game.history else "None")
            print("=" * 40)

        if verbose and steps % 100 == 0:
            print(f"Step {steps}, foundations filled: {sum(len(f) for f in game.foundations)}/52")

        # Simple loop detection
        game_state = str(game.as_jsonable_dict())
        if game_state in seen_states:
            seen_states[game_state] += 1
            if seen_states[game_state] > 3:  # Allow revisiting states a few times
                if verbose:
                    print(f"Loop detected after {steps} steps. Game lost.")
                return False, steps, game
        else:
            seen_states[game_state] = 1

    if verbose:
        print(f"Reached maximum steps ({max_steps}). Game lost.")
    return game.state == KlondikeState.WON, steps, game


def play_game_worker(args: Tuple[int, int, int]) -> Tuple[bool, int]:
    """
    Worker function for parallel execution of games.

    Args:
        args: Tuple containing (game_number, max_steps, seed)

    Returns:
        Tuple of (win status, number of steps taken)
    """
    game_number, max_steps, seed = args
    win, steps, _game = play_game(game_number=game_number, max_steps=max_steps, seed=seed)
    return win, steps


def play_multiple_games(num_games: int = 100, first_game: int = MIN_GAME_NUMBER, max_steps: int = 1000,
                        seed: int = 0, num_processes: Optional[int] = None) -> None:
    """
    Play consecutive deals in parallel and report statistics.

    Args:
        num_games: Number of games to play
        first_game: Game number of the first deal; the rest follow consecutively
        max_steps: Maximum steps per game
        seed: Seed for the agent's choices, shared by every game
        num_processes: Number of processes to use (None = auto)
    """
    # Determine optimal number of processes
    if num_processes is None or num_processes <= 0:
        num_cpus = os.cpu_count() or 4
        num_processes = min(num_cpus, num_games)
    else:
        num_processes = min(num_processes, num_games)

    print(f"Playing games {first_game} to {first_game + num_games - 1} using {num_processes} processes...")

    start_time = time.time()

    game_args = [(first_game + i, max_steps, seed) for i in range(num_games)]

    results: List[Tuple[bool, int]] = []

    completed = 0

    with ProcessPoolExecutor(max_workers=num_processes) as executor:
        for (game_number, _, _), result in zip(game_args, executor.map(play_game_worker, game_args)):
            results.append(result)
            if result[0]:
                logger.info("Game %d won in %d steps", game_number, result[1])

            completed += 1
            if completed % max(1, num_games // 20) == 0 or completed == num_games:
                print(f"Completed {completed}/{num_games} games...", end="\r")

    wins = sum(1 for win, _ in results if win)
    total_steps = sum(steps for _, steps in results)

    end_time = time.time()
    duration = end_time - start_time

    win_rate = (wins / num_games) * 100
    avg_steps = total_steps / num_games

    print(f"\nResults from {num_games} games:")
    print(f"Win rate: {win_rate:.2f}% ({wins}/{num_games})")
    print(f"Average steps per game: {avg_steps:.2f}")
    print(f"Time taken: {duration:.2f} seconds ({duration/num_games:.2f} seconds per game)")


def main() -> None:
    """Main entry point for the CLI application."""
    # Handle process start method for multiprocessing on macOS
    if hasattr(mp, 'set_start_method'):
        try:
            mp.set_start_method('spawn')
        except RuntimeError:
            # Method already set
            pass

    parser = argparse.ArgumentParser(description='Play Klondike Solitaire with a greedy heuristic agent')
    parser.add_argument('--games', type=int, default=1,
                        help='Number of games to play (default: 1)')
    parser.add_argument('--first-game', type=int, default=None,
                        help='Game number of the first deal (default: random for one game, 1 for several)')
    parser.add_argument('--max-steps', type=int, default=1000,
                        help='Maximum steps per game (default: 1000)')
    parser.add_argument('--seed', type=int, default=0,
                        help='Seed for the agent\'s choices (default: 0)')
    parser.add_argument('--verbose', action='store_true',
                        help='Print detailed game progress')
    parser.add_argument('--print-interval', type=int, default=0,
                        help='Print game state every N steps (default: 0 = never)')
    parser.add_argument('--processes', type=int, default=0,
                        help='Number of processes to use (default: 0 = auto)')
    parser.add_argument('--save-log', type=Path, default=None,
                        help='Write the move log of a single game to this file')

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if args.games == 1:
        # For a single game, just run directly (no parallelization needed)
        win, steps, game = play_game(game_number=args.first_game, max_steps=args.max_steps, seed=args.seed,
                                     verbose=args.verbose, print_interval=args.print_interval)
        print(f"Game {game.game_number} {'won' if win else 'lost'} after {steps} steps")
        if args.save_log is not None:
            args.save_log.write_text(to_log_text(game))
            logger.info("Move log written to %s", args.save_log)
    else:
        # For multiple games, use parallel implementation
        play_multiple_games(
            num_games=args.games,
            first_game=args.first_game if args.first_game is not None else MIN_GAME_NUMBER,
            max_steps=args.max_steps,
            seed=args.seed,
            num_processes=args.processes
        )


if __name__ == "__main__":
    main()
