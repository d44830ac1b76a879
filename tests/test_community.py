import networkx as nx
import pytest

from conftest import graph_from_edges, to_networkx
from netlab_dispatch.core.errors import InputError
from netlab_graphs import CommunityDetection, calculate_modularity, serialize_graph
from netlab_graphs.community import (
    community_groups,
    community_sizes,
    generate_dendrogram,
    induced_graph,
    louvain_compute,
    partition_at_level,
)


class TestModularity:
    def test_matches_networkx_for_fixed_partition(self, karate):
        partition = {node: (0 if node < 17 else 1) for node in karate.get_node_list()}
        groups = [
            {n for n, c in partition.items() if c == 0},
            {n for n, c in partition.items() if c == 1},
        ]
        expected = nx.community.modularity(to_networkx(karate), groups)
        assert calculate_modularity(karate, partition) == pytest.approx(expected)

    def test_weighted_modularity_matches_networkx(self):
        g = graph_from_edges([("a", "b", 3), ("b", "c", 1), ("c", "d", 2), ("d", "a", 0.5)])
        partition = {"a": 0, "b": 0, "c": 1, "d": 1}
        expected = nx.community.modularity(to_networkx(g), [{"a", "b"}, {"c", "d"}], weight="weight")
        assert calculate_modularity(g, partition) == pytest.approx(expected)

    def test_single_community_has_zero_modularity(self, triangle):
        assert calculate_modularity(triangle, {"A": 0, "B": 0, "C": 0}) == pytest.approx(0.0)

    def test_missing_assignment_raises(self, triangle):
        with pytest.raises(InputError):
            calculate_modularity(triangle, {"A": 0})

    def test_edgeless_graph(self):
        g = graph_from_edges([], nodes=["x", "y"])
        assert calculate_modularity(g, {"x": 0, "y": 1}) == 0.0


class TestLouvain:
    def test_barbell_splits_into_its_cliques(self, barbell):
        result = CommunityDetection().detect_communities(barbell)
        assert result.num_communities == 2
        assert len({result.communities[n] for n in range(4)}) == 1
        assert len({result.communities[n] for n in range(4, 8)}) == 1
        assert result.communities[0] != result.communities[7]

    def test_every_node_in_exactly_one_community(self, karate):
        result = CommunityDetection().detect_communities(karate)
        assert set(result.communities) == set(karate.get_node_list())
        groups = community_groups(result.communities)
        assert sum(len(members) for members in groups.values()) == karate.number_of_nodes()

    def test_reported_modularity_matches_independent_calculation(self, karate):
        result = CommunityDetection().detect_communities(karate)
        assert result.modularity == pytest.approx(calculate_modularity(karate, result.communities))
        assert result.modularity > 0.3

    def test_deterministic_without_seed(self, karate):
        first = CommunityDetection().detect_communities(karate).communities
        second = CommunityDetection().detect_communities(karate.copy()).communities
        assert first == second

    def test_seeded_runs_are_reproducible(self, karate):
        a = CommunityDetection().detect_communities(karate, seed=3).communities
        b = CommunityDetection().detect_communities(karate, seed=3).communities
        assert a == b

    def test_edgeless_graph_gives_singletons(self):
        g = graph_from_edges([], nodes=["a", "b", "c"])
        result = CommunityDetection().detect_communities(g)
        assert result.num_communities == 3
        assert result.modularity == 0.0

    @pytest.mark.parametrize("weights", [(0, 0), (1, -1)])
    def test_zero_total_weight_gives_singletons(self, weights):
        g = graph_from_edges([("A", "B", weights[0]), ("B", "C", weights[1])])
        result = louvain_compute(g.to_data(), {})
        assert sorted(result["communities"].values()) == [0, 1, 2]
        assert result["modularity"] == 0.0

    def test_explicit_none_options_use_defaults(self, barbell):
        result = CommunityDetection().detect_communities(barbell, max_passes=None, max_levels=None)
        assert result.num_communities == 2

    def test_dendrogram_levels_compose(self, karate):
        dendrogram = generate_dendrogram(karate)
        top = partition_at_level(dendrogram, len(dendrogram) - 1)
        assert set(top) == set(karate.get_node_list())
        assert len(set(top.values())) <= len(set(dendrogram[0].values()))

    def test_induced_graph_keeps_total_weight(self, barbell):
        partition = {n: (0 if n < 4 else 1) for n in barbell.get_node_list()}
        collapsed = induced_graph(partition, barbell)
        assert collapsed.get_edge_weight(0, 0) == 6
        assert collapsed.get_edge_weight(1, 1) == 6
        assert collapsed.get_edge_weight(0, 1) == 1

    def test_compute_function_result_shape(self, barbell):
        progress = []
        out = louvain_compute(serialize_graph(barbell), {}, progress.append)
        assert set(out) >= {"communities", "modularity", "num_communities"}
        assert out["num_communities"] == 2
        assert progress[-1] == 1.0

    def test_unknown_algorithm(self, triangle):
        with pytest.raises(InputError):
            CommunityDetection().detect_communities(triangle, algorithm="girvan-newman")

    def test_sizes_helper(self):
        assert community_sizes({"a": 0, "b": 0, "c": 1}) == {0: 2, 1: 1}
