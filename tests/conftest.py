"""
Shared fixtures for the netlab test-suite.
"""

import networkx as nx
import pytest

from netlab_graphs import Graph


def graph_from_edges(edges, nodes=()):
    g = Graph()
    g.add_nodes_from(nodes)
    for edge in edges:
        g.add_edge(*edge)
    return g


def to_networkx(graph):
    G = nx.Graph()
    G.add_nodes_from(graph.get_node_list())
    for u, v, w in graph.unique_edges():
        G.add_edge(u, v, weight=w)
    return G


@pytest.fixture
def triangle():
    return graph_from_edges([("A", "B"), ("B", "C"), ("C", "A")])


@pytest.fixture
def path4():
    return graph_from_edges([("A", "B"), ("B", "C"), ("C", "D")])


@pytest.fixture
def star():
    return graph_from_edges([("A", "B"), ("A", "C"), ("A", "D")])


@pytest.fixture
def two_pairs():
    return graph_from_edges([("A", "B"), ("C", "D")])


@pytest.fixture
def complete5():
    nodes = range(5)
    return graph_from_edges([(u, v) for u in nodes for v in nodes if u < v])


@pytest.fixture
def karate():
    G = nx.karate_club_graph()
    return graph_from_edges(G.edges())


@pytest.fixture
def barbell():
    """Two 4-cliques (0-3 and 4-7) joined by the single edge 3-4."""
    left = [(u, v) for u in range(4) for v in range(4) if u < v]
    right = [(u, v) for u in range(4, 8) for v in range(4, 8) if u < v]
    return graph_from_edges(left + right + [(3, 4)])
