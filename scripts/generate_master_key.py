#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Generate a 256-bit AES-GCM master key for wrapping signing keys.

Usage:
    python scripts/generate_master_key.py [--chunk 64]

Prints the key as base64, to be stored as MASTER_KEY_B64 in the process
environment. Generate once per environment and back it up: every signing key
wrapped under it becomes unreadable if it is lost or replaced.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

# Add src to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root / "src"))

from custody.crypto import codec
from custody.crypto.envelope import KEY_LEN
from custody.crypto.utils import generate_random_bytes
from custody.config import ENV_MASTER_KEY

WARNING = (
    "WARNING: Rotating or changing this master key permanently locks every existing signing key.\n"
    "   - Private keys wrapped under the old key become unreadable.\n"
    "   - Keys must be re-issued if this value is lost or replaced.\n"
    "   - Generate it ONCE per environment and back it up securely.\n"
    "Do NOT commit this key to version control or store it in the database."
)


def chunk(text: str, size: int = 64) -> List[str]:
    return [text[i : i + size] for i in range(0, len(text), size)] or [""]


def box(title: str, lines: List[str]) -> str:
    """Frame lines in an ASCII box with a title row."""
    width = max([len(line) for line in lines] + [len(title) + 2])
    hr = "+" + "-" * (width + 2) + "+"
    out = [hr, f"| {title.ljust(width)} |", hr]
    out.extend(f"| {line.ljust(width)} |" for line in lines)
    out.append(hr)
    return "\n".join(out)


def generate_master_key() -> str:
    return codec.encode(generate_random_bytes(KEY_LEN))


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Generate a MASTER_KEY_B64 value.")
    parser.add_argument("--chunk", type=int, default=64, help="line width of the boxed output")
    parser.add_argument("--raw", action="store_true", help="print only the base64 value")
    args = parser.parse_args(argv)

    key_b64 = generate_master_key()
    if args.raw:
        print(key_b64)
        return 0

    print("Generating 256-bit AES-GCM master key...\n")
    print(box(ENV_MASTER_KEY, chunk(key_b64, max(args.chunk, 8))))
    print(f"Store this value in the process environment as {ENV_MASTER_KEY} (one line, no breaks).\n")
    print(WARNING)
    return 0


if __name__ == "__main__":
    sys.exit(main())
