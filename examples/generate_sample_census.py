#!/usr/bin/env python3
"""
Generate Sample Census
======================
Writes a random census as a JSON object of address -> balance string.

Usage:
    python examples/generate_sample_census.py

    # Or with custom parameters:
    python examples/generate_sample_census.py --size 100000 --max-balance 1000000000 \\
        --whales 20 --output data/census.json
"""

import argparse
import json
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from reader.census_generator import generate_random_census
from schema.census import census_to_mapping


def generate_sample_census(
    size: int = 10000,
    output_path: str = "data/census.json",
    max_balance: int = 10_000_000,
    whales: int = 0,
    seed: int = 42
) -> str:
    """
    Generate a census file.

    Args:
        size: Number of regular holders
        output_path: JSON file to write
        max_balance: Exclusive upper bound for regular balances
        whales: Extra holders with 18-decimal balances far above the rest,
                so that outlier detection has something to find
        seed: Random seed

    Returns:
        Path written
    """
    participants = generate_random_census(size, max_balance, seed=seed)
    mapping = census_to_mapping(participants)

    for i in range(whales):
        mapping[f"whale{i:04d}"] = str((i + 1) * 10**18 + 123456789)

    folder = os.path.dirname(output_path)
    if folder:
        os.makedirs(folder, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(mapping, f)

    print(f"Wrote {len(mapping):,} holders to {output_path}")
    return output_path


def main():
    parser = argparse.ArgumentParser(description="Generate a random census JSON file")
    parser.add_argument("--size", type=int, default=10000, help="Number of holders")
    parser.add_argument("--max-balance", type=int, default=10_000_000, help="Exclusive balance bound")
    parser.add_argument("--whales", type=int, default=0, help="Number of very large holders to add")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--output", "-o", default="data/census.json", help="Output file")
    args = parser.parse_args()

    generate_sample_census(
        size=args.size,
        output_path=args.output,
        max_balance=args.max_balance,
        whales=args.whales,
        seed=args.seed
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
