import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from ca_reco.automaton import CellularAutomaton
from ca_reco.extractor import TrackExtractor, candidates_to_frame
from ca_reco.hits import Hit
from ca_reco.network import SegmentNetwork


def _add(net, hid, layer):
    return net.add([Hit(hid, layer, float(layer), float(hid), 0.0)])


def _relaxed(net):
    CellularAutomaton().relax(net)
    return net


def test_single_chain_is_extracted_whole():
    net = SegmentNetwork(1)
    segs = [_add(net, 10 + L, L) for L in (3, 2, 1, 0)]
    for p, c in zip(segs, segs[1:]):
        net.link(p, c)
    cands = TrackExtractor().extract(_relaxed(net))
    assert len(cands) == 1
    tc = cands[0]
    assert tc.id == 0
    assert tc.hit_ids == [13, 12, 11, 10]
    assert tc.layers == [3, 2, 1, 0]
    assert tc.state == 3
    assert len(tc) == 4
    assert tc.segments == [s.index for s in segs]


def test_walk_prefers_the_higher_rated_child():
    net = SegmentNetwork(1)
    a = _add(net, 1, 2)
    short = _add(net, 2, 1)
    b = _add(net, 3, 1)
    c = _add(net, 4, 0)
    net.link(a, short)
    net.link(a, b)
    net.link(b, c)
    cands = TrackExtractor().extract(_relaxed(net))
    assert cands[0].hit_ids == [1, 3, 4]
    # the left-over branch becomes its own one-hit chain
    assert [tc.hit_ids for tc in cands[1:]] == [[2]]

    cands = TrackExtractor(min_hits=2).extract(_relaxed(net))
    assert [tc.hit_ids for tc in cands] == [[1, 3, 4]]


def test_candidates_are_hit_disjoint():
    net = SegmentNetwork(1)
    a1 = _add(net, 1, 2)
    a2 = _add(net, 2, 2)
    m = _add(net, 3, 1)
    c = _add(net, 4, 0)
    net.link(a1, m)
    net.link(a2, m)
    net.link(m, c)
    cands = TrackExtractor().extract(_relaxed(net))
    # equal states: the earlier segment wins the shared hits
    assert cands[0].hit_ids == [1, 3, 4]
    seen = set()
    for tc in cands:
        assert not seen & set(tc.hit_ids)
        seen.update(tc.hit_ids)


def test_min_state_and_max_candidates():
    net = SegmentNetwork(1)
    for k in range(3):
        top = _add(net, 10 * k + 1, 1)
        bottom = _add(net, 10 * k, 0)
        net.link(top, bottom)
    _relaxed(net)
    # tops sit exactly at state 1, so the threshold is inclusive
    assert len(TrackExtractor(min_state=1).extract(net)) == 3
    assert len(TrackExtractor(min_state=2).extract(net)) == 0
    assert len(TrackExtractor(max_candidates=2).extract(net)) == 2


def test_overlapping_segments_add_one_hit_per_step():
    net = SegmentNetwork(2)
    h = [Hit(i, L, float(L), 0.0, 0.0) for i, L in enumerate((3, 2, 1, 0))]
    s0 = net.add(h[0:2])
    s1 = net.add(h[1:3])
    s2 = net.add(h[2:4])
    net.link(s0, s1)
    net.link(s1, s2)
    cands = TrackExtractor(min_hits=4).extract(_relaxed(net))
    assert [tc.hit_ids for tc in cands] == [[0, 1, 2, 3]]


def test_candidates_frame():
    net = SegmentNetwork(1)
    a = _add(net, 7, 1)
    b = _add(net, 8, 0)
    net.link(a, b)
    df = candidates_to_frame(TrackExtractor().extract(_relaxed(net)))
    assert list(df.columns) == ["hit_id", "track_id", "position"]
    assert df["hit_id"].tolist() == [7, 8]
    assert df["track_id"].tolist() == [0, 0]
    assert df["position"].tolist() == [0, 1]
    assert str(df["hit_id"].dtype) == "int64"
