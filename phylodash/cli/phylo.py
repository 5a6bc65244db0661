#!/usr/bin/env python3
"""
Build a phylogenetic tree from protein sequences using the EMBL-EBI services.

Examples:
  python -m phylodash.cli.phylo sequences.fasta
  python -m phylodash.cli.phylo sequences.fasta --method clustalo --out tree.dnd
  python -m phylodash.cli.phylo -s MKTAYIAKQR -s MKVAYIAKQR --ascii
"""

from __future__ import annotations
import argparse
import asyncio
from io import StringIO
from pathlib import Path
import sys
import time
from typing import List

import httpx
from Bio import Phylo, SeqIO

from phylodash.services.errors import PhyloDashError
from phylodash.services.phylogeny import PhylogenyOrchestrator


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="phylodash-tree",
        description="Submit sequences to Clustal Omega (+ Simple Phylogeny) and wait for the tree.",
    )
    p.add_argument("fasta", type=Path, nargs="?", help="FASTA file with two or more sequences.")
    p.add_argument("-s", "--sequence", action="append", default=[], help="Raw sequence (repeatable).")
    p.add_argument("--method", choices=["simple_phylogeny", "clustalo"], default="simple_phylogeny")
    p.add_argument("--interval", type=float, default=5.0, help="Seconds between polls.")
    p.add_argument("--max-wait", type=float, default=900.0, help="Give up after this many seconds.")
    p.add_argument("--out", type=Path, default=None, help="Write the tree here instead of stdout.")
    p.add_argument("--ascii", action="store_true", help="Also draw the tree as ASCII art.")
    return p.parse_args(argv)


def read_sequences(args: argparse.Namespace) -> List[str]:
    seqs: List[str] = []
    if args.fasta:
        seqs.extend(str(rec.seq) for rec in SeqIO.parse(str(args.fasta), "fasta"))
    seqs.extend(args.sequence)
    return seqs


async def run(args: argparse.Namespace, sequences: List[str], client: httpx.AsyncClient) -> int:
    orchestrator = PhylogenyOrchestrator.from_client(client)
    env = await orchestrator.submit(sequences, args.method)
    token = env.job_id
    stage = env.stage
    print(f"[info] submitted {env.service} job {env.external_id} (stage: {stage})", file=sys.stderr)

    deadline = time.monotonic() + args.max_wait
    while time.monotonic() < deadline:
        await asyncio.sleep(args.interval)
        env = await orchestrator.poll(token)

        if env.status == "FAILURE":
            print(f"[error] {env.message}", file=sys.stderr)
            return 3
        if env.status == "FINISHED":
            write_tree(env.result, args)
            return 0

        # the token changes when the alignment hands over to the tree job
        token = env.job_id or token
        if env.stage != stage:
            stage = env.stage
            print(f"[info] now at stage {stage} ({env.external_service} job {env.external_id})", file=sys.stderr)

    print(f"[error] gave up after {args.max_wait:g}s; resume with job id {token}", file=sys.stderr)
    return 4


def write_tree(tree_text: str, args: argparse.Namespace) -> None:
    if args.out:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(tree_text, encoding="utf-8")
        print(f"Wrote: {args.out}", file=sys.stderr)
    else:
        sys.stdout.write(tree_text if tree_text.endswith("\n") else tree_text + "\n")

    if args.ascii:
        tree = Phylo.read(StringIO(tree_text), "newick")
        Phylo.draw_ascii(tree, file=sys.stderr)


async def _main(args: argparse.Namespace, sequences: List[str]) -> int:
    async with httpx.AsyncClient(timeout=None, follow_redirects=True) as client:
        return await run(args, sequences, client)


def main(argv=None) -> int:
    args = parse_args(argv)

    if args.fasta and not args.fasta.is_file():
        print(f"[error] Input file not found: {args.fasta.resolve()}", file=sys.stderr)
        return 2

    sequences = read_sequences(args)
    if len(sequences) < 2:
        print("[error] At least two sequences are required for tree generation.", file=sys.stderr)
        return 2

    try:
        return asyncio.run(_main(args, sequences))
    except PhyloDashError as e:
        print(f"[error] {e}", file=sys.stderr)
        return 3


if __name__ == "__main__":
    raise SystemExit(main())
