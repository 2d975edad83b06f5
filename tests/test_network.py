import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

import networkx as nx
import pytest

from ca_reco.errors import InvalidArity
from ca_reco.hits import Hit
from ca_reco.network import SegmentNetwork


def _one_segment_net(layers):
    net = SegmentNetwork(1)
    segs = [net.add([Hit(i, layer, float(layer), 0.0, 0.0)]) for i, layer in enumerate(layers)]
    return net, segs


def test_add_checks_arity():
    net = SegmentNetwork(2)
    with pytest.raises(ValueError):
        net.add([Hit(1, 1, 0.0, 0.0, 0.0)])
    with pytest.raises(InvalidArity):
        net.add([])
    with pytest.raises(ValueError):
        SegmentNetwork(0)


def test_link_writes_both_sides():
    net, (a, b, c) = _one_segment_net([2, 1, 0])
    net.link(a, b)
    net.link(b, c)
    assert b.index in a.children and a.index in b.parents
    assert net.children_of(b) == [c]
    assert net.parents_of(b) == [a]
    assert net.n_links == 2
    assert list(net.links()) == [(a, b), (b, c)]
    assert net.check_links() == []


def test_link_must_descend():
    net, (a, b) = _one_segment_net([1, 1])
    with pytest.raises(ValueError):
        net.link(a, b)
    net, (low, high) = _one_segment_net([0, 3])
    with pytest.raises(ValueError):
        net.link(low, high)
    assert net.n_links == 0


def test_link_rejects_foreign_segment():
    net, (a,) = _one_segment_net([2])
    other, (b,) = _one_segment_net([1])
    with pytest.raises(ValueError):
        net.link(a, b)
    assert a in net and b not in net
    assert "a" not in net


def test_unlink_and_check_links():
    net, (a, b, c) = _one_segment_net([2, 1, 0])
    net.link(a, b)
    assert net.unlink(a, b)
    assert not net.unlink(a, b)
    assert not a.children and not b.parents

    # a one-sided edge written by hand is reported
    a.add_child(c)
    problems = net.check_links()
    assert len(problems) == 1
    assert "#0" in problems[0]


def test_layers_and_lookup():
    net, segs = _one_segment_net([0, 3, 1, 3])
    assert net.layers == [3, 1, 0]
    assert [s.index for s in net.on_layer(3)] == [1, 3]
    assert net.on_layer(7) == []
    assert net.find([2]) is segs[2]
    assert net.find([99]) is None


def test_networkx_export():
    net, (a, b, c, d) = _one_segment_net([3, 2, 1, 0])
    net.link(a, b)
    net.link(a, c)
    net.link(b, d)
    c.raise_state()
    G = net.to_networkx()
    assert isinstance(G, nx.DiGraph)
    assert set(G.edges) == {(0, 1), (0, 2), (1, 3)}
    assert G.nodes[2]["state"] == 1
    assert G.nodes[0]["layer"] == 3
    assert G.nodes[3]["hit_ids"] == (3,)
    assert net.is_acyclic()


def test_remove_segments_reindexes_links():
    net, (a, b, c, d) = _one_segment_net([3, 2, 1, 0])
    net.link(a, b)
    net.link(b, c)
    net.link(c, d)
    assert net.remove_segments([1, 1, 42]) == 1
    assert len(net) == 3
    assert [s.hit_ids for s in net] == [(0,), (2,), (3,)]
    assert [s.index for s in net] == [0, 1, 2]
    assert not net[0].children
    assert net[1].children == {2} and net[2].parents == {1}
    assert net.check_links() == []
    assert net.layers == [3, 1, 0]
    assert net.remove_segments([]) == 0


def test_clear_and_reset_states():
    net, (a, b) = _one_segment_net([1, 0])
    net.link(a, b)
    a.raise_state()
    net.reset_states()
    assert a.inner_state == 0
    net.clear()
    assert len(net) == 0 and net.layers == []
    assert not a.children
