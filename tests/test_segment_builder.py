import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from ca_reco.criteria import CriteriaRegistry, Crit2DeltaPhi, Crit4NoZigZag
from ca_reco.errors import CriteriaConfigError
from ca_reco.hits import Hit
from ca_reco.network import SegmentNetwork
from ca_reco.segment import Segment
from ca_reco.segment_builder import SegmentBuilder


def _line(layers, track=0):
    return [Hit(100 * track + L, L, 10.0 * (L + 1), 0.0, 0.0) for L in layers]


def test_one_segments_follow_layer_order():
    hits = [Hit(1, 0, 1.0, 0, 0), Hit(2, 2, 3.0, 0, 0), Hit(3, 1, 2.0, 0, 0), Hit(4, 2, 3.5, 0, 0)]
    net = SegmentBuilder.build_one_segments(hits)
    assert net.arity == 1
    assert [s.hit_ids[0] for s in net] == [2, 4, 3, 1]
    assert net.layers == [2, 1, 0]


def test_connect_adjacent_layers_only():
    hits = _line([2, 1, 0]) + _line([2, 1, 0], track=1)
    builder = SegmentBuilder(CriteriaRegistry())
    net = builder.build_one_segments(hits)
    made = builder.connect(net)
    # no criteria: full bipartite between neighbouring layers
    assert made == 8
    assert all(p.layer == c.layer + 1 for p, c in net.links())
    assert builder.n_tested == 8 and builder.n_linked == 8
    assert net.check_links() == []


def test_skipped_layers_need_permission():
    hits = _line([3, 1])
    strict = SegmentBuilder(CriteriaRegistry())
    net = strict.build_one_segments(hits)
    assert strict.connect(net) == 0

    tolerant = SegmentBuilder(CriteriaRegistry(), max_skipped_layers=1)
    net = tolerant.build_one_segments(hits)
    assert tolerant.connect(net) == 1
    (parent, child), = net.links()
    assert (parent.layer, child.layer) == (3, 1)


def test_criteria_filter_links():
    hits = [
        Hit(1, 1, 10.0, 0.0, 0.0),
        Hit(2, 0, 5.0, 0.1, 0.0),
        Hit(3, 0, 0.0, 5.0, 0.0),
    ]
    builder = SegmentBuilder(CriteriaRegistry([Crit2DeltaPhi(0.0, 5.0)]), collect_diagnostics=True)
    net = builder.build_one_segments(hits)
    assert builder.connect(net) == 1
    (parent, child), = net.links()
    assert child.hit_ids == (2,)

    diag = builder.diagnostics_frame()
    assert len(diag) == 2
    assert set(diag.columns) >= {"arity", "parent", "child", "accepted", "Crit2_DeltaPhi"}
    assert diag["accepted"].sum() == 1
    assert diag["Crit2_DeltaPhi"].max() == pytest.approx(90.0)


def test_kd_tree_preselection():
    hits = [Hit(1, 1, 0.0, 0.0, 0.0), Hit(2, 0, 1.0, 0.0, 0.0), Hit(3, 0, 10.0, 0.0, 0.0)]
    builder = SegmentBuilder(CriteriaRegistry(), max_link_distance=2.0)
    net = builder.build_one_segments(hits)
    assert builder.connect(net) == 1
    assert builder.n_tested == 1
    (_, child), = net.links()
    assert child.hit_ids == (2,)


def test_lengthen_records_skips_and_overlap_links():
    builder = SegmentBuilder(CriteriaRegistry(), max_skipped_layers=1)
    net = builder.build_one_segments(_line([4, 2, 1]))
    builder.connect(net)
    twos = builder.lengthen(net)
    assert twos.arity == 2
    assert sorted(s.hit_ids for s in twos) == [(2, 1), (4, 2)]
    assert twos.find([4, 2]).skipped_layers == 1
    assert twos.find([2, 1]).skipped_layers == 0
    assert twos.find([4, 1]) is None
    assert twos.n_links == 0

    builder.connect(twos)
    # (4,2) -> (2,1) is the only overlapping pair
    assert [(p.hit_ids, c.hit_ids) for p, c in twos.links()] == [((4, 2), (2, 1))]


def test_build_reaches_target_arity():
    builder = SegmentBuilder(CriteriaRegistry())
    net = builder.build(_line([3, 2, 1, 0]), target_arity=3)
    assert net.arity == 3
    assert sorted(s.hit_ids for s in net) == [(2, 1, 0), (3, 2, 1)]
    assert net.n_links == 1
    assert builder.build(_line([1, 0])).arity == 1
    with pytest.raises(CriteriaConfigError):
        builder.build(_line([1, 0]), target_arity=0)


def test_bad_segment_length_abandons_pairing_only():
    registry = CriteriaRegistry([Crit4NoZigZag(-1.0, 1.0)])
    builder = SegmentBuilder(registry)
    net = SegmentNetwork(3)
    parent = net.add(_line([3, 2, 1]))
    stray = Segment(_line([2, 1], track=1))
    assert builder.link_if_compatible(net, parent, stray) is False
    assert builder.n_bad_pairings == 1
    assert not parent.children


def test_shorter_parent_with_longer_stray_child_is_skipped():
    registry = CriteriaRegistry([Crit4NoZigZag(-1.0, 1.0)])
    builder = SegmentBuilder(registry)
    net = SegmentNetwork(2)
    parent = net.add(_line([3, 2]))
    stray = Segment(_line([2, 1, 0], track=1))
    assert builder.link_if_compatible(net, parent, stray) is False
    assert builder.n_bad_pairings == 1
    assert builder.n_linked == 0
    assert not parent.children
    assert net.check_links() == []


def test_length_mismatch_inside_one_network_is_skipped():
    builder = SegmentBuilder(CriteriaRegistry())
    net = SegmentNetwork(2)
    parent = net.add(_line([3, 2]))
    child = net.add(_line([2, 1]))
    # a malformed chain smuggled into the arena
    child.hits = child.hits + (Hit(999, 0, 1.0, 0.0, 0.0),)
    assert builder.link_if_compatible(net, parent, child) is False
    assert builder.n_bad_pairings == 1
    assert not parent.children


def test_invalid_builder_settings():
    with pytest.raises(CriteriaConfigError):
        SegmentBuilder(CriteriaRegistry(), max_skipped_layers=-1)
    with pytest.raises(CriteriaConfigError):
        SegmentBuilder(CriteriaRegistry(), max_link_distance=0.0)
