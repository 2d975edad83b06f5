import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

import numpy as np
import pandas as pd
import pytest

from ca_reco.hits import Hit, build_layer_trees, group_by_layer, hits_from_frame, hits_to_frame


def test_hits_from_frame_orders_outer_layers_first():
    df = pd.DataFrame({
        "hit_id": [1, 2, 3, 4],
        "layer": [0, 2, 1, 2],
        "x": [1.0, 3.0, 2.0, 3.5],
        "y": [0.0, 0.0, 0.0, 0.5],
        "z": [0.0, 0.0, 0.0, 0.0],
    })
    hits = hits_from_frame(df)
    assert [h.hit_id for h in hits] == [2, 4, 3, 1]
    assert hits[0] == Hit(2, 2, 3.0, 0.0, 0.0)

    back = hits_to_frame(hits)
    assert list(back.columns) == ["hit_id", "layer", "x", "y", "z"]
    assert back["hit_id"].tolist() == [2, 4, 3, 1]


def test_hits_from_frame_missing_column():
    with pytest.raises(KeyError):
        hits_from_frame(pd.DataFrame({"hit_id": [1], "x": [0.0], "y": [0.0], "z": [0.0]}))


def test_negative_layer_rejected():
    with pytest.raises(ValueError):
        Hit(1, -1, 0.0, 0.0, 0.0)


def test_hit_derived_quantities():
    h = Hit(7, 3, 3.0, 4.0, -1.0)
    assert h.rho == pytest.approx(5.0)
    assert h.phi == pytest.approx(np.arctan2(4.0, 3.0))
    assert np.allclose(h.position, [3.0, 4.0, -1.0])


def test_group_by_layer_and_trees():
    hits = [Hit(1, 0, 0.0, 0.0, 0.0), Hit(2, 1, 1.0, 0.0, 0.0), Hit(3, 1, 5.0, 0.0, 0.0)]
    groups = group_by_layer(hits)
    assert list(groups) == [1, 0]
    assert [h.hit_id for h in groups[1]] == [2, 3]

    trees = build_layer_trees(groups)
    tree, pts = trees[1]
    assert pts.shape == (2, 3)
    assert sorted(tree.query_ball_point([0.0, 0.0, 0.0], r=2.0)) == [0]
