#!/usr/bin/env python3
"""Format the mactl sources and tests, or check them with --check."""
import subprocess
import sys
from pathlib import Path


def main():
    project_root = Path(__file__).parent.parent
    check = "--check" in sys.argv[1:]
    targets = [str(project_root / "src"), str(project_root / "tests")]

    print(f"{'Checking' if check else 'Formatting'} {', '.join(targets)}...")

    isort_args = ["isort", "--profile", "black", *targets]
    black_args = ["black", "--line-length", "110", *targets]
    if check:
        isort_args.insert(1, "--check-only")
        black_args.insert(1, "--check")

    failed = subprocess.run(isort_args, check=False).returncode != 0
    failed |= subprocess.run(black_args, check=False).returncode != 0

    print("Running flake8 for style verification...")
    failed |= subprocess.run(["flake8", "--max-line-length", "110", *targets], check=False).returncode != 0

    sys.exit(1 if failed and check else 0)


if __name__ == "__main__":
    main()
