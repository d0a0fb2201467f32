"""Command-line helpers for linting contract data and exporting schemas."""

from __future__ import annotations

import argparse
from pathlib import Path

from .errors import ResolutionError
from .loader import ContractSource, load_contracts
from .registry import RegistrySnapshot
from .schema import write_schemas


def main(argv: list[str] | None = None) -> int:
    """Validate a mapping file and contract directory.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        Exit code: 0 on success, 1 when validation fails.

    """
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("mapping", type=Path, help="producer mapping YAML")
    parser.add_argument("contracts_dir", type=Path, help="directory of contract YAML")
    parser.add_argument(
        "--schema-out",
        type=Path,
        default=None,
        help="Optional directory to write the generated JSON Schemas",
    )
    parser.add_argument(
        "--resolve",
        metavar="OWNER/NAME",
        default=None,
        help="Print the contracts a producer repository resolves to",
    )
    args = parser.parse_args(argv)

    source = ContractSource(mapping_path=args.mapping, contracts_dir=args.contracts_dir)
    try:
        loaded = load_contracts(source)
    except ResolutionError as exc:
        print(f"Contract validation failed for {args.mapping}:")
        for issue in exc.issues:
            print(f"  - {issue}")
        return 1

    if args.schema_out:
        write_schemas(args.schema_out)

    snapshot = RegistrySnapshot.build(loaded)
    print(
        f"contracts are valid ({len(snapshot.contracts)} contracts / "
        f"{len(snapshot.mappings)} producers)"
    )

    if args.resolve:
        resolved = snapshot.resolve(args.resolve)
        if not resolved:
            print(f"{args.resolve}: no applicable contracts")
        for contract in resolved:
            print(f"{args.resolve}: {contract.id} (version {contract.version})")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
