#!/usr/bin/env python3
"""
Parser fuzzer for the class diagram language.

Generates random and mutated inputs to find parser bugs like:
- Crashes (exceptions other than lexer/parse errors)
- Hangs (infinite loops)
- Disagreement between the hand-written and the Lark grammar parser

Usage:
    python scripts/fuzz_parser.py [--duration MINUTES] [--seed SEED]

Findings are saved to scripts/fuzz_findings/
"""

import argparse
import hashlib
import random
import re
import signal
import string
import sys
import time
import traceback
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

# Add scripts directory to path
sys.path.insert(0, str(Path(__file__).parent))

from lark.exceptions import UnexpectedInput

from cdl_lexer import LexerError
from cdl_parser import ParseError, parse
from cdl_peg_parser import parse as peg_parse

# Expected parse errors - these are normal rejections
EXPECTED_ERRORS = (
    LexerError,
    ParseError,
)

# Directory for saving findings
FINDINGS_DIR = Path(__file__).parent / "fuzz_findings"

TIMEOUT_SECONDS = 5
MAX_CORPUS = 1000

# Quoted labels, comments, operators, words, whitespace runs, or any single
# character, in that order.
PIECE_PATTERN = re.compile(
    r'"[^"\n]*"?|//[^\n]*|<\|--|--\|>|<\|\.\.|\.\.\|>|\*--|--\*|o--|--o|<--|-->|<\.\.|\.\.>|--'
    r'|\w+|\s+|.',
    re.DOTALL,
)


class ParseTimeout(Exception):
    pass


class ParserMismatch(Exception):
    """The two parsers disagreed on an input the hand-written parser accepts."""


@contextmanager
def timeout(seconds):
    """Context manager for timeout on Unix systems."""
    def handler(signum, frame):
        raise ParseTimeout(f"Timed out after {seconds} seconds")

    if hasattr(signal, 'SIGALRM'):
        old_handler = signal.signal(signal.SIGALRM, handler)
        signal.alarm(seconds)
        try:
            yield
        finally:
            signal.alarm(0)
            signal.signal(signal.SIGALRM, old_handler)
    else:
        # Windows fallback - no timeout
        yield


class Fuzzer:
    """Class diagram parser fuzzer."""

    # Token pools for generation
    KEYWORDS = ["class", "interface"]

    OPERATORS = [
        "<|--", "--|>", "<|..", "..|>", "*--", "--*", "o--", "--o",
        "<--", "-->", "<..", "..>", "--",
    ]
    PUNCTUATION = ["{", "}", "(", ")", "[", "]", ":", "=", ",", '"']
    VISIBILITY = ["+", "-", "#", "~"]
    SPECIAL = ["\x00", "\xff", "\r\n", "\t", "\f", "🎉", "α", "\\", "//", "@", "."]

    TYPES = ["int", "string", "bool", "float", "List", "Map", "Order", "void"]
    IDENTIFIERS = ["x", "y", "foo", "bar", "A", "B", "Customer", "Order", "o", "_id", "42"]

    # Seed corpus - known valid inputs
    SEED_CORPUS = [
        'class A',
        'class A { }',
        'class A { x }',
        'class A { -x: int }',
        'class A { +x: int[] = zero }',
        'class A { #run() }',
        'class A { ~run(x: int, y: int): bool[] }',
        'class A { run(x,) }',
        'class A { run(x = 1 y: int) : void }',
        'interface Shape',
        'A --|> B',
        'A <|-- B',
        'A ..|> B',
        'A *-- B',
        'A o-- B',
        'A --> B',
        'A ..> B',
        'A -- B',
        'A "1" --|> "many" B : "extends"',
        'A "0..1" *-- B',
        'A --> "*" B : "owns"',
        'class A { -items: Item[] +add(item: Item): bool } interface I A ..|> I',
        'class A // trailing comment\nclass B',
    ]

    def __init__(self, seed=None, findings_dir=FINDINGS_DIR):
        self.rng = random.Random(seed)
        self.findings_dir = Path(findings_dir)
        self.stats = {
            "iterations": 0,
            "parse_ok": 0,
            "parse_error": 0,
            "crashes": 0,
            "timeouts": 0,
            "mismatches": 0,
            "unique_findings": set(),
        }
        self.start_time = None

        # Create findings directory
        self.findings_dir.mkdir(parents=True, exist_ok=True)

    def random_identifier(self) -> str:
        """Generate a random identifier."""
        if self.rng.random() < 0.7:
            return self.rng.choice(self.IDENTIFIERS)
        length = self.rng.randint(1, 20)
        first = self.rng.choice(string.ascii_letters + "_")
        rest = "".join(self.rng.choices(string.ascii_letters + string.digits + "_", k=length-1))
        return first + rest

    def random_label(self) -> str:
        """Generate a random quoted label."""
        if self.rng.random() < 0.2:
            return self.rng.choice(['""', '"1"', '"*"', '"0..1"', '"many"', '"has a"'])
        length = self.rng.randint(0, 20)
        # Avoid quotes, backslashes and newlines (which would end or break the label)
        alphabet = string.printable.replace('"', '').replace('\\', '').replace('\n', '').replace('\r', '')
        return '"' + "".join(self.rng.choices(alphabet, k=length)) + '"'

    def random_type(self) -> str:
        """Generate a random type annotation."""
        base = self.rng.choice(self.TYPES)
        if self.rng.random() < 0.3:
            return f"{base}[]"
        return base

    def random_field(self, with_visibility=True) -> str:
        text = self.random_identifier()
        if with_visibility and self.rng.random() < 0.5:
            text = self.rng.choice(self.VISIBILITY) + text
        if self.rng.random() < 0.6:
            text += f": {self.random_type()}"
        if self.rng.random() < 0.2:
            text += f" = {self.random_identifier()}"
        return text

    def random_method(self) -> str:
        name = self.random_identifier()
        if self.rng.random() < 0.5:
            name = self.rng.choice(self.VISIBILITY) + name
        params = ", ".join(self.random_field(with_visibility=False)
                           for _ in range(self.rng.randint(0, 3)))
        text = f"{name}({params})"
        if self.rng.random() < 0.5:
            text += f": {self.random_type()}"
        return text

    def generate_random(self) -> str:
        """Generate a completely random input."""
        parts = []
        num_decls = self.rng.randint(1, 5)

        for _ in range(num_decls):
            decl_type = self.rng.randint(0, 2)

            if decl_type == 0:
                # Class
                decl = f"class {self.random_identifier()}"
                if self.rng.random() < 0.7:
                    members = []
                    for _ in range(self.rng.randint(0, 4)):
                        if self.rng.random() < 0.5:
                            members.append(self.random_field())
                        else:
                            members.append(self.random_method())
                    decl += " { " + "\n".join(members) + " }"
                parts.append(decl)
            elif decl_type == 1:
                # Interface
                parts.append(f"interface {self.random_identifier()}")
            else:
                # Relationship
                rel = [self.random_identifier()]
                if self.rng.random() < 0.3:
                    rel.append(self.random_label())
                rel.append(self.rng.choice(self.OPERATORS))
                if self.rng.random() < 0.3:
                    rel.append(self.random_label())
                rel.append(self.random_identifier())
                if self.rng.random() < 0.3:
                    rel.append(f": {self.random_label()}")
                parts.append(" ".join(rel))

        return "\n".join(parts)

    # =========================================================================
    # Mutation
    # =========================================================================

    def split_pieces(self, source: str) -> list:
        """Split source into rough lexical pieces, keeping whitespace.

        Works on inputs the lexer would reject, so mutated text can be
        mutated again.
        """
        return PIECE_PATTERN.findall(source)

    def mutate(self, source: str) -> str:
        """Apply one random mutation to source."""
        pieces = self.split_pieces(source)
        if not pieces:
            return self._random_piece()

        mutation = self.rng.choice([
            self._drop_piece,
            self._duplicate_piece,
            self._swap_pieces,
            self._insert_piece,
            self._replace_operator,
            self._flip_char,
        ])
        return "".join(mutation(pieces))

    def _random_piece(self) -> str:
        return self.rng.choice([
            self.rng.choice(self.KEYWORDS),
            self.rng.choice(self.OPERATORS),
            self.rng.choice(self.PUNCTUATION),
            self.rng.choice(self.VISIBILITY),
            self.rng.choice(self.SPECIAL),
            self.random_identifier(),
            self.random_label(),
            " ",
            "\n",
        ])

    def _drop_piece(self, pieces):
        del pieces[self.rng.randrange(len(pieces))]
        return pieces

    def _duplicate_piece(self, pieces):
        i = self.rng.randrange(len(pieces))
        pieces.insert(i, pieces[i])
        return pieces

    def _swap_pieces(self, pieces):
        if len(pieces) < 2:
            return pieces
        i = self.rng.randrange(len(pieces) - 1)
        pieces[i], pieces[i + 1] = pieces[i + 1], pieces[i]
        return pieces

    def _insert_piece(self, pieces):
        pieces.insert(self.rng.randint(0, len(pieces)), self._random_piece())
        return pieces

    def _replace_operator(self, pieces):
        positions = [i for i, p in enumerate(pieces) if p in self.OPERATORS]
        if not positions:
            return self._insert_piece(pieces)
        pieces[self.rng.choice(positions)] = self.rng.choice(self.OPERATORS)
        return pieces

    def _flip_char(self, pieces):
        i = self.rng.randrange(len(pieces))
        piece = pieces[i]
        pos = self.rng.randrange(len(piece))
        flipped = chr(ord(piece[pos]) ^ self.rng.randint(1, 127))
        pieces[i] = piece[:pos] + flipped + piece[pos + 1:]
        return pieces

    # =========================================================================
    # Checking
    # =========================================================================

    def save_finding(self, input_str: str, error: Exception, category: str):
        """Write a finding to the findings directory, once per distinct input."""
        digest = hashlib.md5(input_str.encode('utf-8', errors='replace')).hexdigest()[:8]
        if digest in self.stats["unique_findings"]:
            return
        self.stats["unique_findings"].add(digest)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        path = self.findings_dir / f"{category}_{timestamp}_{digest}.txt"
        report = "\n".join([
            f"Category: {category}",
            f"Error: {type(error).__name__}: {error}",
            f"Timestamp: {timestamp}",
            "",
            "--- Input ---",
            input_str,
            "",
            "--- Traceback ---",
            traceback.format_exc(),
        ])
        path.write_text(report, encoding='utf-8', errors='replace')

        print(f"\n[!] Saved finding: {path}")

    def check_agreement(self, input_str: str, diagram):
        """Raise ParserMismatch unless the grammar parser builds the same AST."""
        try:
            other = peg_parse(input_str)
        except UnexpectedInput as e:
            raise ParserMismatch(f"grammar parser rejected valid input: {e}") from e
        if other != diagram:
            raise ParserMismatch("parsers produced different ASTs")

    def test_input(self, input_str: str) -> bool:
        """Test a single input. Returns True if interesting (crash/timeout/mismatch)."""
        try:
            with timeout(TIMEOUT_SECONDS):
                diagram = parse(input_str)
                self.check_agreement(input_str, diagram)
            self.stats["parse_ok"] += 1
            return False
        except EXPECTED_ERRORS:
            # Normal parse rejection
            self.stats["parse_error"] += 1
            return False
        except ParseTimeout as e:
            self.stats["timeouts"] += 1
            self.save_finding(input_str, e, "timeout")
            return True
        except ParserMismatch as e:
            self.stats["mismatches"] += 1
            self.save_finding(input_str, e, "mismatch")
            return True
        except Exception as e:
            # Unexpected crash!
            self.stats["crashes"] += 1
            self.save_finding(input_str, e, "crash")
            return True

    # =========================================================================
    # Driver
    # =========================================================================

    def next_input(self, corpus: list) -> str:
        """Pick the next input: fresh, mutated from the corpus, or a corpus entry."""
        strategy = self.rng.random()
        if strategy < 0.3:
            return self.generate_random()
        if strategy < 0.8:
            source = self.rng.choice(corpus)
            for _ in range(self.rng.randint(1, 4)):
                source = self.mutate(source)
            return source
        return self.rng.choice(corpus)

    def run(self, duration_minutes: float = None, max_iterations: int = None):
        """Fuzz until the time or iteration limit (or Ctrl-C)."""
        self.start_time = time.time()
        deadline = self.start_time + duration_minutes * 60 if duration_minutes else None

        print(f"Fuzzing with {len(self.SEED_CORPUS)} seed inputs, findings in {self.findings_dir}")
        print("-" * 60)

        corpus = list(self.SEED_CORPUS)
        try:
            while deadline is None or time.time() < deadline:
                if max_iterations is not None and self.stats["iterations"] >= max_iterations:
                    break
                self.stats["iterations"] += 1

                source = self.next_input(corpus)
                if self.test_input(source) and len(corpus) < MAX_CORPUS:
                    corpus.append(source)

                if self.stats["iterations"] % 1000 == 0:
                    self.print_stats()
        except KeyboardInterrupt:
            print("\n\nInterrupted by user")

        print("\n" + "=" * 60)
        print("Final Statistics:")
        self.print_stats()

    def print_stats(self):
        elapsed = time.time() - self.start_time
        rate = self.stats["iterations"] / elapsed if elapsed > 0 else 0
        counts = " ".join(
            f"{key}={self.stats[key]}"
            for key in ("parse_ok", "parse_error", "crashes", "timeouts", "mismatches")
        )
        print(f"[{elapsed:.1f}s] iterations={self.stats['iterations']} ({rate:.0f}/s) {counts} "
              f"unique={len(self.stats['unique_findings'])}")


def main():
    parser = argparse.ArgumentParser(description="Fuzz the class diagram parser")
    parser.add_argument("--duration", type=float, default=None,
                        help="Duration in minutes (default: run forever)")
    parser.add_argument("--iterations", type=int, default=None,
                        help="Stop after this many inputs")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed for reproducibility")
    args = parser.parse_args()

    seed = args.seed if args.seed is not None else int(time.time())
    print(f"Random seed: {seed}")

    fuzzer = Fuzzer(seed=seed)
    fuzzer.run(duration_minutes=args.duration, max_iterations=args.iterations)


if __name__ == "__main__":
    main()
