import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

import numpy as np
import pandas as pd
import pytest

from ca_reco.config import CAConfig, load_config
from ca_reco.errors import CriteriaConfigError
from ca_reco.track_finder import TrackFinder

CRITERIA = {
    "1": [{"name": "Crit2_DeltaPhi", "deltaPhiMax": 5.0}],
    "3": [{"name": "Crit4_NoZigZag", "prodMin": -1.0, "prodMax": 1.0}],
}


def _event(phis_deg=(0.0, 90.0, 200.0), layers=range(6), drop=()):
    rows = []
    for k, phi in enumerate(np.radians(phis_deg)):
        for L in layers:
            if (k, L) in drop:
                continue
            rho = 10.0 * (L + 1)
            rows.append((100 * k + L, L, rho * np.cos(phi), rho * np.sin(phi), 2.0 * rho))
    df = pd.DataFrame(rows, columns=["hit_id", "layer", "x", "y", "z"])
    # shuffle rows deterministically; the finder must not depend on input order
    return df.sample(frac=1.0, random_state=7).reset_index(drop=True)


def _config(**sections):
    raw = {"criteria": CRITERIA, "extractor": {"min_hits": 4}}
    raw.update(sections)
    return CAConfig.from_dict(raw)


def test_straight_tracks_are_found_exactly():
    finder = TrackFinder(_config())
    assert finder.target_arity == 3
    cands = finder.run(_event())
    assert len(cands) == 3
    found = sorted(sorted(tc.hit_ids) for tc in cands)
    assert found == [[100 * k + L for L in range(6)] for k in range(3)]
    for tc in cands:
        assert tc.layers == [5, 4, 3, 2, 1, 0]

    stats = finder.get_statistics()
    assert stats["arity"] == 3
    assert stats["automaton_converged"]
    assert stats["pairings_abandoned"] == 0
    assert finder.network.check_links() == []


def test_missing_layer_needs_skips():
    event = _event(phis_deg=(0.0,), drop={(0, 2)})
    assert TrackFinder(_config()).run(event) == []

    cands = TrackFinder(_config(builder={"max_skipped_layers": 1})).run(event)
    assert cands
    layers = cands[0].layers
    assert len(layers) >= 4
    assert all(a > b for a, b in zip(layers, layers[1:]))
    assert (3, 1) in list(zip(layers, layers[1:]))


def test_cleaning_options_do_not_lose_clean_tracks():
    cfg = _config(automaton={"clean_connections": True, "clean_between_levels": True})
    cands = TrackFinder(cfg).run(_event())
    assert sorted(len(tc) for tc in cands) == [6, 6, 6]


def test_run_events_keeps_order():
    finder = TrackFinder(_config())
    events = [_event(phis_deg=(0.0,)), _event(phis_deg=(0.0, 120.0))]
    serial = finder.run_events(events)
    threaded = finder.run_events(events, max_workers=2)
    assert [len(r) for r in serial] == [1, 2]
    assert [len(r) for r in threaded] == [1, 2]
    assert [sorted(tc.hit_ids) for tc in threaded[1]] == [sorted(tc.hit_ids) for tc in serial[1]]


def test_config_from_dict_validates():
    cfg = _config(builder={"max_skipped_layers": 2, "target_arity": 2})
    assert cfg.max_skipped_layers == 2
    assert cfg.min_hits == 4
    assert TrackFinder(cfg).target_arity == 2

    with pytest.raises(CriteriaConfigError):
        CAConfig.from_dict({"bogus": {}})
    with pytest.raises(CriteriaConfigError):
        CAConfig.from_dict({"builder": {"max_skiped_layers": 1}})
    with pytest.raises(CriteriaConfigError):
        CAConfig.from_dict({"criteria": {"1": [{"name": "Crit4_NoZigZag"}]}})
    with pytest.raises(CriteriaConfigError):
        CAConfig.from_dict({"automaton": {"max_rounds": 0}})


def test_config_sections_must_be_objects(tmp_path):
    for raw in ({"builder": None}, {"extractor": [1, 2]}, {"criteria": "Crit2_DeltaPhi"}, [1]):
        with pytest.raises(CriteriaConfigError):
            CAConfig.from_dict(raw)

    path = tmp_path / "null_section.json"
    path.write_text('{"builder": null}', encoding="utf-8")
    with pytest.raises(CriteriaConfigError):
        load_config(path)


def test_load_config(tmp_path):
    path = tmp_path / "ca.json"
    path.write_text(
        '{"criteria": {"1": [{"name": "Crit2_DeltaRho", "deltaRhoMin": 0}]},'
        ' "extractor": {"min_hits": 2}, "diagnostics": true}',
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.min_hits == 2
    assert cfg.diagnostics is True
    assert len(cfg.registry()) == 1

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(bad)
    with pytest.raises(ValueError):
        load_config(tmp_path / "missing.json")
