import copy
import random
import string
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import override

DRAW_COUNT = 3
TABLEAU_COUNT = 7
FOUNDATION_LETTERS = "ABCD"
POSITION_LETTERS = string.ascii_uppercase

# Game numbers seed the Microsoft C runtime LCG; changing any of these changes every deal.
MIN_GAME_NUMBER = 1
MAX_GAME_NUMBER = 2**31 - 1
LCG_MULTIPLIER = 214013
LCG_INCREMENT = 2531011
LCG_MODULUS = 2**31
LCG_SHIFT = 16


class KlondikeError(ValueError):
    """Base class for every rejected input; the game state is never modified when one is raised."""


class InvalidAddress(KlondikeError):
    pass


class AddressEmpty(KlondikeError):
    pass


class SourceEmpty(AddressEmpty):
    pass


class IllegalSource(KlondikeError):
    pass


class CannotFlip(KlondikeError):
    pass


class IllegalDestination(KlondikeError):
    pass


class NoValidFoundation(KlondikeError):
    pass


class NothingToUndo(KlondikeError):
    pass


class InvalidGameNumber(KlondikeError):
    pass


class MalformedLog(KlondikeError):
    def __init__(self, message: str, line_number: int | None = None):
        super().__init__(message)
        self.line_number = line_number


class MoveMismatch(KlondikeError):
    pass


class ReplayDivergence(KlondikeError):
    def __init__(self, index: int, reason: KlondikeError):
        super().__init__(f"Move {index + 1} of the log cannot be replayed: {reason}")
        self.index = index
        self.reason = reason


class Color(str, Enum):
    RED = "RED"
    BLACK = "BLACK"


class Suit(str, Enum):
    SPADE = "SPADE"
    CLUB = "CLUB"
    HEART = "HEART"
    DIAMOND = "DIAMOND"

    @staticmethod
    def index_map():
        return {
            0: Suit.SPADE,
            1: Suit.CLUB,
            2: Suit.HEART,
            3: Suit.DIAMOND,
        }

    @staticmethod
    def letter_map():
        return {suit.letter: suit for suit in Suit}

    @property
    def color(self):
        if self == Suit.HEART or self == Suit.DIAMOND:
            return Color.RED
        elif self == Suit.CLUB or self == Suit.SPADE:
            return Color.BLACK
        else:
            msg = f"Suit {self} has no color"
            raise ValueError(msg)

    @property
    def letter(self) -> str:
        return self.value[0]

    @override
    def __str__(self) -> str:
        return {
            Suit.SPADE: "♠",
            Suit.CLUB: "♣",
            Suit.HEART: "♥",
            Suit.DIAMOND: "♦",
        }[self]

    def __int__(self) -> int:
        for idx, sut in Suit.index_map().items():
            if sut == self:
                return idx

        msg = f"Suit {self} not found in index map"
        raise ValueError(msg)


class Number(str, Enum):
    ACE = "A"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"

    @property
    def int_repr(self) -> int:
        return {
            Number.ACE: 1,
            Number.TWO: 2,
            Number.THREE: 3,
            Number.FOUR: 4,
            Number.FIVE: 5,
            Number.SIX: 6,
            Number.SEVEN: 7,
            Number.EIGHT: 8,
            Number.NINE: 9,
            Number.TEN: 10,
            Number.JACK: 11,
            Number.QUEEN: 12,
            Number.KING: 13,
        }[self]

    @staticmethod
    def repr_map():
        return {item.value: item for item in Number}

    @override
    def __str__(self) -> str:
        return self.value

    @override
    def __repr__(self) -> str:
        return self.value

    def __int__(self) -> int:
        return int(self.int_repr)


@dataclass(frozen=True)
class Card:
    suit: Suit
    number: Number

    @property
    def code(self) -> str:
        return f"{self.number.value}{self.suit.letter}"

    @staticmethod
    def from_code(code: str) -> "Card":
        number = Number.repr_map().get(code[:-1].upper())
        suit = Suit.letter_map().get(code[-1:].upper())
        if number is None or suit is None:
            msg = f"Invalid card code {code!r}"
            raise ValueError(msg)
        return Card(suit, number)

    def as_jsonable_dict(self) -> dict:
        return {
            "suit": self.suit.value,
            "rank": self.number.value,
            "color": self.suit.color.value,
        }

    @override
    def __str__(self) -> str:
        return f"{self.number}{self.suit}"

    @override
    def __repr__(self) -> str:
        return f"{self.number}{self.suit}"


type HidableCard = Card | None


class AddressKind(str, Enum):
    WASTE = "W"
    FOUNDATION = "0"
    TABLEAU = "T"
    DECK = "DD"


@dataclass(frozen=True)
class Address:
    kind: AddressKind
    index: int = 0  # foundation 0..3 or tableau column 0..6
    position: int | None = None  # tableau only, 0 = bottom card

    @staticmethod
    def waste() -> "Address":
        return Address(AddressKind.WASTE)

    @staticmethod
    def deck() -> "Address":
        return Address(AddressKind.DECK)

    @staticmethod
    def foundation(index: int) -> "Address":
        return Address(AddressKind.FOUNDATION, index)

    @staticmethod
    def tableau(column: int, position: int | None = None) -> "Address":
        return Address(AddressKind.TABLEAU, column, position)

    @override
    def __str__(self) -> str:
        if self.kind == AddressKind.FOUNDATION:
            return f"0{FOUNDATION_LETTERS[self.index]}"
        if self.kind == AddressKind.TABLEAU:
            letter = "" if self.position is None else POSITION_LETTERS[self.position]
            return f"{self.index + 1}{letter}"
        return self.kind.value


def _scan_address(text: str, pos: int) -> tuple[Address, int]:
    head = text[pos : pos + 1]
    if head == "W":
        return Address.waste(), pos + 1
    if text.startswith("DD", pos):
        return Address.deck(), pos + 2
    if head == "0":
        letter = text[pos + 1 : pos + 2]
        if letter and letter in FOUNDATION_LETTERS:
            return Address.foundation(FOUNDATION_LETTERS.index(letter)), pos + 2
        msg = f"Foundations are 0A to 0D, not {text[pos : pos + 2]!r}"
        raise InvalidAddress(msg)
    if head and head in string.digits:
        column = int(head)
        if column > TABLEAU_COUNT:
            msg = f"There is no column {column}; columns are 1 to {TABLEAU_COUNT}"
            raise InvalidAddress(msg)
        letter = text[pos + 1 : pos + 2]
        if letter and letter in POSITION_LETTERS:
            return Address.tableau(column - 1, POSITION_LETTERS.index(letter)), pos + 2
        return Address.tableau(column - 1), pos + 1
    msg = f"Unrecognized address {text[pos:]!r}"
    raise InvalidAddress(msg)


def parse_address(token: str) -> Address:
    text = token.strip().upper()
    if not text:
        msg = "Empty address"
        raise InvalidAddress(msg)
    address, end = _scan_address(text, 0)
    if end != len(text):
        msg = f"Unexpected {text[end:]!r} after {address}"
        raise InvalidAddress(msg)
    return address


@dataclass(frozen=True)
class Action:
    source: Address
    destination: Address | None = None

    @staticmethod
    def draw() -> "Action":
        return Action(Address.deck())

    @override
    def __str__(self) -> str:
        if self.destination is None:
            return str(self.source)
        return f"{self.source} {self.destination}"

    @override
    def __repr__(self) -> str:
        return self.__str__()


def parse_action(text: str) -> Action:
    """Parse player input such as ``DD``, ``3C``, ``W 0A`` or ``3C5`` into an Action."""
    compact = "".join(text.split()).upper()
    if not compact:
        msg = "Enter a card address, DD to draw, undo or quit"
        raise InvalidAddress(msg)

    source, end = _scan_address(compact, 0)
    if source.kind == AddressKind.DECK:
        if end != len(compact):
            msg = "DD draws from the deck and takes no destination"
            raise InvalidAddress(msg)
        return Action.draw()
    if source.kind == AddressKind.TABLEAU and source.position is None:
        msg = f"Name a card in column {source}, e.g. {source}A"
        raise InvalidAddress(msg)
    if end == len(compact):
        return Action(source)

    destination, end = _scan_address(compact, end)
    if end != len(compact):
        msg = f"Unexpected {compact[end:]!r} after {destination}"
        raise InvalidAddress(msg)
    if destination.kind in (AddressKind.WASTE, AddressKind.DECK):
        msg = f"Cards cannot be moved to {destination}"
        raise IllegalDestination(msg)
    return Action(source, destination)


@dataclass(frozen=True)
class Deal:
    game_number: int


@dataclass(frozen=True)
class Draw:
    count: int

    def as_action(self) -> Action:
        return Action.draw()


@dataclass(frozen=True)
class Recycle:
    cards: tuple[Card, ...]  # waste before recycling, bottom to top

    def as_action(self) -> Action:
        return Action.draw()


@dataclass(frozen=True)
class Flip:
    address: Address

    def as_action(self) -> Action:
        return Action(self.address)


@dataclass(frozen=True)
class Transfer:
    source: Address
    destination: Address
    count: int

    def as_action(self) -> Action:
        return Action(self.source, self.destination)


type Move = Deal | Draw | Recycle | Flip | Transfer


def ordered_deck() -> list[Card]:
    return [Card(suit, number) for number in Number for suit in Suit]


def check_game_number(game_number: int) -> int:
    if isinstance(game_number, bool) or not isinstance(game_number, int):
        msg = f"Game number must be an integer, not {game_number!r}"
        raise InvalidGameNumber(msg)
    if not MIN_GAME_NUMBER <= game_number <= MAX_GAME_NUMBER:
        msg = f"Game number must be between {MIN_GAME_NUMBER} and {MAX_GAME_NUMBER}, not {game_number}"
        raise InvalidGameNumber(msg)
    return game_number


def random_game_number() -> int:
    return random.randint(MIN_GAME_NUMBER, MAX_GAME_NUMBER)


def lcg(seed: int) -> Iterator[int]:
    state = seed
    while True:
        state = (state * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS
        yield state >> LCG_SHIFT


def shuffled_deck(game_number: int) -> list[Card]:
    """
    Return the 52 cards in the order fixed by ``game_number``.

    Starting from ``ordered_deck()``, each step picks ``rand() % remaining``,
    swaps that card with the last remaining one and deals the last one out.
    ``rand`` is ``lcg(game_number)``, so the result depends on nothing else.
    """
    check_game_number(game_number)
    cards = ordered_deck()
    rand = lcg(game_number)
    shuffled: list[Card] = []
    while cards:
        j = next(rand) % len(cards)
        cards[j], cards[-1] = cards[-1], cards[j]
        shuffled.append(cards.pop())
    return shuffled


class Stack:
    def __init__(self, initial_cards: list[Card] | None = None):
        self.cards = list(initial_cards or [])

    def as_jsonable_dict(self) -> dict:
        return {
            "cards": [card.as_jsonable_dict() for card in self.cards],
        }

    @override
    def __str__(self) -> str:
        return f"Stack: {self.cards}"

    def add_to_top(self, card: Card) -> None:
        self.cards.append(card)

    def add_multiple_to_top(self, cards: list[Card]) -> None:
        self.cards.extend(cards)

    def inspect_top(self) -> HidableCard:
        if len(self.cards) == 0:
            return None
        return self.cards[-1]

    def inspect_all(self) -> list[Card]:
        return self.cards.copy()

    def get_from_top(self) -> HidableCard:
        if len(self.cards) == 0:
            return None
        return self.cards.pop()

    def get_all(self) -> list[Card]:
        cards = self.cards
        self.cards = []
        return cards

    def pop_run(self, from_index: int) -> list[Card]:
        assert 0 <= from_index <= len(self.cards)  # noqa: S101
        run = self.cards[from_index:]
        del self.cards[from_index:]
        return run

    def __len__(self) -> int:
        return len(self.cards)


class Foundation(Stack):
    def __init__(self, suit: Suit, initial_cards: list[Card] | None = None):
        super().__init__(initial_cards)
        self.suit = suit

    @override
    def __str__(self) -> str:
        return f"Foundation {self.suit}: {self.cards}"

    def accepts(self, card: Card) -> bool:
        return card.suit == self.suit and int(card.number) == len(self) + 1

    def push(self, card: Card) -> bool:
        if not self.accepts(card):
            return False
        self.add_to_top(card)
        return True


class Tableau:
    class HidableCardInternal:
        def __init__(self, card: Card, *, hidden: bool = False):
            self.card = card
            self.hidden = hidden

        @override
        def __str__(self) -> str:
            return f"{self.card} {'HIDDEN' if self.hidden else ''}"

    def as_jsonable_dict(self) -> dict:
        return {
            "hidden": self.hidden.as_jsonable_dict(),
            "visible": self.visible.as_jsonable_dict(),
        }

    def __init__(self):
        self.hidden = Stack()
        self.visible = Stack()

    @override
    def __str__(self) -> str:
        return f"Tableau: {self.hidden} {self.visible}"

    def add_to_top(self, card: Card, *, hide: bool = False) -> None:
        if hide:
            assert len(self.visible) == 0  # noqa: S101
            self.hidden.add_to_top(card)
        else:
            self.visible.add_to_top(card)

    def push_run(self, cards: list[Card]) -> None:
        self.visible.add_multiple_to_top(cards)

    def accepts(self, card: Card) -> bool:
        if len(self) == 0:
            return card.number == Number.KING
        top_card = self.inspect_top()
        if top_card is None:
            return False
        return top_card.suit.color != card.suit.color and int(top_card.number) == int(card.number) + 1

    def inspect_top(self) -> HidableCard:
        return self.visible.inspect_top()

    def inspect_all(self) -> list[HidableCard]:
        cards: list[HidableCard] = [None for _ in range(len(self.hidden))]
        cards.extend(self.visible.inspect_all())
        return cards

    def inspect_all_with_hidden(self) -> list[HidableCardInternal]:
        cards = [self.HidableCardInternal(card, hidden=True) for card in self.hidden.inspect_all()]
        cards.extend([self.HidableCardInternal(card, hidden=False) for card in self.visible.inspect_all()])
        return cards

    def pop_run(self, from_index: int) -> list[Card]:
        # Never turns the newly exposed card; flipping is a separate move.
        assert from_index >= self.hidden_len()  # noqa: S101
        return self.visible.pop_run(from_index - self.hidden_len())

    def flip_top(self) -> bool:
        if self.visible_len() > 0 or self.hidden_len() == 0:
            return False
        card = self.hidden.get_from_top()
        assert card is not None  # noqa: S101
        self.visible.add_to_top(card)
        return True

    def hide_top(self) -> None:
        assert self.visible_len() == 1  # noqa: S101
        card = self.visible.get_from_top()
        assert card is not None  # noqa: S101
        self.hidden.add_to_top(card)

    def __len__(self) -> int:
        return self.visible_len() + self.hidden_len()

    def visible_len(self) -> int:
        return len(self.visible)

    def hidden_len(self) -> int:
        return len(self.hidden)


class KlondikeState(str, Enum):
    SETUP = "SETUP"
    PLAYING = "PLAYING"
    WON = "WON"


@dataclass(kw_only=True, eq=True)
class Render:
    state: str
    game_number: int
    deck_size: int
    waste: list[Card]  # up to three showing cards, bottom to top
    foundations: list[HidableCard]  # top card on each foundation
    tableaus: list[list[HidableCard]]  # all cards on each tableau with null for hidden cards
    move_count: int
    undo_count: int


class Klondike:
    def __init__(self, game_number: int) -> None:
        self.deal = Deal(check_game_number(game_number))
        self.foundations = [Foundation(suit) for suit in Suit]
        self.tableaus = [Tableau() for _ in range(TABLEAU_COUNT)]
        self.deck = Stack()
        self.waste = Stack()

        self.history: list[Move] = []
        self.state = KlondikeState.SETUP

        self.move_count = 0
        self.undo_count = 0

        hand = Stack(shuffled_deck(game_number))
        for idx, tableau in enumerate(self.tableaus):
            for k in range(idx + 1):
                from_top = hand.get_from_top()
                assert from_top is not None  # noqa: S101
                tableau.add_to_top(from_top, hide=k != idx)
        self.deck.add_multiple_to_top(hand.get_all())

    @property
    def game_number(self) -> int:
        return self.deal.game_number

    def is_won(self) -> bool:
        return all(len(foundation) == len(Number) for foundation in self.foundations)

    def all_cards(self) -> list[Card]:
        cards = self.deck.inspect_all() + self.waste.inspect_all()
        for foundation in self.foundations:
            cards.extend(foundation.inspect_all())
        for tableau in self.tableaus:
            cards.extend(item.card for item in tableau.inspect_all_with_hidden())
        return cards

    def resolve(self, address: Address) -> list[Card]:
        """
        Return the cards ``address`` denotes.

        A tableau card brings every card stacked above it; the waste and the
        foundations only ever expose their top card.
        """
        if address.kind == AddressKind.WASTE:
            card = self.waste.inspect_top()
            if card is None:
                msg = "The waste is empty"
                raise AddressEmpty(msg)
            return [card]
        if address.kind == AddressKind.FOUNDATION:
            card = self.foundations[address.index].inspect_top()
            if card is None:
                msg = f"Foundation {address} is empty"
                raise AddressEmpty(msg)
            return [card]
        if address.kind == AddressKind.TABLEAU:
            position = self._position(address)
            return [item.card for item in self.tableaus[address.index].inspect_all_with_hidden()[position:]]
        msg = "DD is the draw token, not a card"
        raise InvalidAddress(msg)

    def _position(self, address: Address) -> int:
        tableau = self.tableaus[address.index]
        if len(tableau) == 0:
            msg = f"Column {address.index + 1} is empty"
            raise AddressEmpty(msg)
        if address.position is None:
            return len(tableau) - 1
        if address.position >= len(tableau):
            msg = f"There is no card at {address}"
            raise AddressEmpty(msg)
        return address.position

    def _plan(self, action: Action) -> Move | None:
        source = action.source
        if source.kind == AddressKind.DECK:
            if action.destination is not None:
                msg = "The deck can only be drawn from"
                raise IllegalSource(msg)
            return self._plan_draw()
        if action.destination is None:
            return self._plan_single(source)
        return self._plan_transfer(source, action.destination)

    def _plan_draw(self) -> Move | None:
        if len(self.deck) > 0:
            return Draw(min(DRAW_COUNT, len(self.deck)))
        if len(self.waste) > 0:
            return Recycle(tuple(self.waste.inspect_all()))
        return None

    def _plan_single(self, source: Address) -> Move:
        if source.kind == AddressKind.TABLEAU:
            tableau = self.tableaus[source.index]
            position = self._position(source)
            if position < tableau.hidden_len():
                if position != len(tableau) - 1:
                    msg = f"{Address.tableau(source.index, position)} is not the top card of its column"
                    raise CannotFlip(msg)
                return Flip(Address.tableau(source.index, position))
        return self._plan_to_foundation(source)

    def _plan_to_foundation(self, source: Address) -> Move:
        run = self._source_run(source)
        if len(run) != 1:
            msg = f"{source} names {len(run)} cards; only a single card can go to a foundation"
            raise NoValidFoundation(msg)
        card = run[0]
        idx = int(card.suit)
        if not self.foundations[idx].accepts(card):
            msg = f"{card} cannot go to any foundation yet"
            raise NoValidFoundation(msg)
        return Transfer(self._source_address(source), Address.foundation(idx), 1)

    def _plan_transfer(self, source: Address, destination: Address) -> Move:
        run = self._source_run(source)
        source = self._source_address(source)
        if destination.kind == AddressKind.FOUNDATION:
            if len(run) != 1:
                msg = f"Only one card at a time can go to foundation {destination}"
                raise IllegalDestination(msg)
            if not self.foundations[destination.index].accepts(run[0]):
                msg = f"{run[0]} cannot go on foundation {destination}"
                raise IllegalDestination(msg)
        elif destination.kind == AddressKind.TABLEAU:
            if destination.position is not None:
                msg = f"Name only the destination column, {destination.index + 1} rather than {destination}"
                raise IllegalDestination(msg)
            if source.kind == AddressKind.TABLEAU and source.index == destination.index:
                msg = f"{source} is already in column {destination}"
                raise IllegalDestination(msg)
            if not self.tableaus[destination.index].accepts(run[0]):
                msg = f"{run[0]} cannot go on column {destination}"
                raise IllegalDestination(msg)
        else:
            msg = f"Cards cannot be moved to {destination}"
            raise IllegalDestination(msg)
        return Transfer(source, destination, len(run))

    def _source_run(self, source: Address) -> list[Card]:
        if source.kind == AddressKind.DECK:
            msg = "Cards cannot be taken from the deck; draw with DD"
            raise IllegalSource(msg)
        try:
            run = self.resolve(source)
        except AddressEmpty as e:
            raise SourceEmpty(str(e)) from e
        if source.kind == AddressKind.TABLEAU:
            tableau = self.tableaus[source.index]
            if len(tableau) - len(run) < tableau.hidden_len():
                msg = f"{self._source_address(source)} is face down; flip it first"
                raise IllegalSource(msg)
        return run

    def _source_address(self, source: Address) -> Address:
        if source.kind == AddressKind.TABLEAU and source.position is None:
            return Address.tableau(source.index, self._position(source))
        return source

    def _take(self, address: Address, count: int) -> list[Card]:
        if address.kind == AddressKind.TABLEAU:
            tableau = self.tableaus[address.index]
            return tableau.pop_run(len(tableau) - count)
        pile = self.waste if address.kind == AddressKind.WASTE else self.foundations[address.index]
        return pile.pop_run(len(pile) - count)

    def _place(self, address: Address, cards: list[Card], *, checked: bool) -> None:
        if address.kind == AddressKind.TABLEAU:
            self.tableaus[address.index].push_run(cards)
        elif address.kind == AddressKind.WASTE:
            self.waste.add_multiple_to_top(cards)
        else:
            foundation = self.foundations[address.index]
            for card in cards:
                if checked:
                    pushed = foundation.push(card)
                    assert pushed  # noqa: S101
                else:
                    foundation.add_to_top(card)

    def _perform(self, move: Move) -> None:
        if isinstance(move, Draw):
            for _ in range(move.count):
                card = self.deck.get_from_top()
                assert card is not None  # noqa: S101
                self.waste.add_to_top(card)
        elif isinstance(move, Recycle):
            # Oldest drawn card ends up on top of the deck, so the deck comes back in dealt order.
            cards = self.waste.get_all()
            cards.reverse()
            self.deck.add_multiple_to_top(cards)
        elif isinstance(move, Flip):
            flipped = self.tableaus[move.address.index].flip_top()
            assert flipped  # noqa: S101
        elif isinstance(move, Transfer):
            self._place(move.destination, self._take(move.source, move.count), checked=True)
        else:
            msg = f"{move} cannot be performed"
            raise TypeError(msg)

    def _revert(self, move: Move) -> None:
        if isinstance(move, Draw):
            cards = self.waste.pop_run(len(self.waste) - move.count)
            cards.reverse()
            self.deck.add_multiple_to_top(cards)
        elif isinstance(move, Recycle):
            cards = self.deck.get_all()
            cards.reverse()
            assert tuple(cards) == move.cards  # noqa: S101
            self.waste.add_multiple_to_top(list(move.cards))
        elif isinstance(move, Flip):
            self.tableaus[move.address.index].hide_top()
        elif isinstance(move, Transfer):
            self._place(move.source, self._take(move.destination, move.count), checked=False)
        else:
            msg = f"{move} cannot be undone"
            raise TypeError(msg)

    def _refresh_state(self) -> None:
        if self.is_won():
            self.state = KlondikeState.WON
        elif self.history:
            self.state = KlondikeState.PLAYING
        else:
            self.state = KlondikeState.SETUP

    def plan(self, action: Action) -> Move | None:
        """Return the move ``action`` would make without applying it; raises if it is illegal."""
        return self._plan(action)

    def step(self, action: Action) -> Move | None:
        move = self._plan(action)
        if move is None:
            # Drawing with both deck and waste empty changes nothing.
            return None
        self._perform(move)
        self.history.append(move)
        self.move_count += 1
        self._refresh_state()
        return move

    def undo(self) -> Move:
        if len(self.history) == 0:
            msg = "There is nothing to undo"
            raise NothingToUndo(msg)

        move = self.history.pop()
        self._revert(move)
        self.undo_count += 1
        self._refresh_state()
        return move

    def legal_actions(self) -> list[Action]:
        candidates: list[Action] = []
        if len(self.deck) > 0 or len(self.waste) > 0:
            candidates.append(Action.draw())

        sources: list[Address] = []
        if len(self.waste) > 0:
            sources.append(Address.waste())
        for idx, tableau in enumerate(self.tableaus):
            if tableau.visible_len() == 0 and tableau.hidden_len() > 0:
                candidates.append(Action(Address.tableau(idx, len(tableau) - 1)))
            sources.extend(Address.tableau(idx, position) for position in range(tableau.hidden_len(), len(tableau)))
        sources.extend(Address.foundation(idx) for idx, foundation in enumerate(self.foundations) if len(foundation))

        destinations = [Address.foundation(idx) for idx in range(len(self.foundations))]
        destinations.extend(Address.tableau(idx) for idx in range(len(self.tableaus)))
        candidates.extend(Action(source, destination) for source in sources for destination in destinations)

        legal: list[Action] = []
        for action in candidates:
            try:
                self._plan(action)
            except KlondikeError:
                continue
            legal.append(action)
        return legal

    def render(self) -> Render:
        return Render(
            state=self.state.value,
            game_number=self.game_number,
            deck_size=len(self.deck),
            waste=self.waste.inspect_all()[-DRAW_COUNT:],
            foundations=[foundation.inspect_top() for foundation in self.foundations],
            tableaus=[tableau.inspect_all() for tableau in self.tableaus],
            move_count=self.move_count,
            undo_count=self.undo_count,
        )

    def copy(self) -> "Klondike":
        return copy.deepcopy(self)

    def as_jsonable_dict(self) -> dict:
        return {
            "foundations": [foundation.as_jsonable_dict() for foundation in self.foundations],
            "tableaus": [tableau.as_jsonable_dict() for tableau in self.tableaus],
            "deck": self.deck.as_jsonable_dict(),
            "waste": self.waste.as_jsonable_dict(),
        }


def new_game(game_number: int | None = None) -> Klondike:
    if game_number is None:
        game_number = random_game_number()
    return Klondike(game_number)


def apply(state: Klondike, action: Action | str) -> Klondike:
    """
    Apply one player input and return the resulting state.

    ``state`` itself is left untouched, whether the input is accepted or a
    ``KlondikeError`` is raised.
    """
    if isinstance(action, str):
        action = parse_action(action)
    new_state = state.copy()
    new_state.step(action)
    return new_state


def undo(state: Klondike) -> Klondike:
    new_state = state.copy()
    new_state.undo()
    return new_state
