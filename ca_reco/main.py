#!/usr/bin/env python3
r"""
Cellular-automaton track finding runner for one or more hit tables.

Reads per-event hit CSV files (columns ``hit_id, layer, x, y, z``), a JSON
configuration (see :class:`ca_reco.config.CAConfig`), builds the segment
network, relaxes it, extracts candidates, and writes them as a
``hit_id, track_id, position`` CSV next to the input (or to ``--out-dir``).
With ``--truth`` the candidates are compared against a truth table
(``hit_id, particle_id[, layer]``) and the feedback summary is logged and
optionally written.

.. code-block:: bash

   ca-reco -f event_000.csv --config ca_config.json
   ca-reco -f 'events/*.csv' --config ca_config.json --truth-dir truth/ --summary sum.csv
"""
from __future__ import annotations

import argparse
import logging
import os
from glob import glob
from pathlib import Path
from typing import List, Optional

import pandas as pd

from ca_reco.config import CAConfig, load_config
from ca_reco.extractor import candidates_to_frame
from ca_reco.feedback import compare_to_truth
from ca_reco.track_finder import TrackFinder


def build_parser() -> argparse.ArgumentParser:
    """Command-line interface of the runner."""
    p = argparse.ArgumentParser(description="Run cellular-automaton track finding on hit tables.")
    p.add_argument("-f", "--file", type=str, required=True,
                   help="Hit CSV, a directory of *.csv, or a glob (e.g. 'events/*.csv').")
    p.add_argument("--config", type=str, default=None,
                   help="JSON config (criteria, builder, automaton, extractor). Default: no criteria.")
    p.add_argument("--out-dir", type=str, default=None,
                   help="Directory for candidate CSVs (default: next to each input).")
    p.add_argument("--truth", type=str, default=None,
                   help="Truth CSV for a single input event.")
    p.add_argument("--truth-dir", type=str, default=None,
                   help="Directory with truth CSVs named like the inputs.")
    p.add_argument("--summary", type=str, default=None,
                   help="If set, write per-event feedback summaries to this CSV.")
    p.add_argument("--diagnostics-out", type=str, default=None,
                   help="If set (and config enables diagnostics), write criterion values to this CSV.")
    p.add_argument("--plot", action="store_true", default=False,
                   help="Plot the network of the first event (default: False).")
    p.add_argument("-v", "--verbose", action="store_true",
                   help="Enable verbose logging.")
    return p


def setup_logging(verbose: bool = False) -> None:
    """``DEBUG`` with ``verbose`` else ``INFO``; ``'%(asctime)s | %(levelname)-8s | %(message)s'``."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )


def apply_plotting_guard(enable_plots: bool) -> None:
    """Force the non-interactive ``Agg`` backend when plots are off."""
    if enable_plots:
        return
    os.environ.setdefault("MPLBACKEND", "Agg")
    import matplotlib
    matplotlib.use("Agg", force=True)


def _resolve_inputs(file_arg: str) -> List[Path]:
    if any(ch in file_arg for ch in "*?[]"):
        return sorted(Path(x) for x in glob(file_arg))
    p = Path(file_arg)
    if p.is_dir():
        return sorted(p.glob("*.csv"))
    return [p]


def _truth_for(ev: Path, args: argparse.Namespace) -> Optional[Path]:
    if args.truth:
        return Path(args.truth)
    if args.truth_dir:
        cand = Path(args.truth_dir) / ev.name
        return cand if cand.is_file() else None
    return None


def main(argv: Optional[List[str]] = None) -> None:
    r"""
    **read → build → relax → extract → write (→ feedback)** for each input.
    """
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    apply_plotting_guard(args.plot)

    events = _resolve_inputs(args.file)
    if not events:
        raise FileNotFoundError(f"No hit tables found for --file={args.file}")
    if args.truth and len(events) > 1:
        raise ValueError("--truth takes one event; use --truth-dir for several")

    config = load_config(Path(args.config)) if args.config else CAConfig()
    logging.info("Config: %s", config)
    finder = TrackFinder(config)

    summaries = []
    diag_frames = []
    for idx, ev in enumerate(events, start=1):
        logging.info("=== Event %d/%d: %s ===", idx, len(events), ev.name)
        hits = pd.read_csv(ev)
        candidates = finder.run(hits)

        for k, v in finder.get_statistics().items():
            logging.info("  %s: %s", k, v)

        out_dir = Path(args.out_dir) if args.out_dir else ev.parent
        out_dir.mkdir(parents=True, exist_ok=True)
        out_path = out_dir / f"{ev.stem}_candidates.csv"
        reco = candidates_to_frame(candidates)
        reco.to_csv(out_path, index=False)
        logging.info("Wrote %d candidates to %s", len(candidates), out_path)

        if config.diagnostics and finder.builder is not None:
            diag = finder.builder.diagnostics_frame()
            diag.insert(0, "event", ev.stem)
            diag_frames.append(diag)

        truth_path = _truth_for(ev, args)
        if truth_path is not None:
            fb = compare_to_truth(reco, pd.read_csv(truth_path))
            for k, v in fb.summary.items():
                logging.info("  %s: %s", k, v)
            summaries.append({"event": ev.stem, **fb.summary})

        if idx == 1 and args.plot and finder.network is not None:
            import ca_reco.plotting as ca_plot  # noqa: WPS433
            ca_plot.plot_network_rz(finder.network, candidates, title=ev.name)

    if args.summary and summaries:
        pd.DataFrame(summaries).to_csv(args.summary, index=False)
        logging.info("Wrote feedback summary to %s", args.summary)
    if args.diagnostics_out and diag_frames:
        pd.concat(diag_frames, ignore_index=True).to_csv(args.diagnostics_out, index=False)
        logging.info("Wrote criterion diagnostics to %s", args.diagnostics_out)


if __name__ == "__main__":
    main()
