import math

import networkx as nx
import pytest

from conftest import graph_from_edges, to_networkx
from netlab_dispatch.core.errors import InputError
from netlab_graphs import NetworkStatistics, StatisticAlgorithm, serialize_graph
from netlab_graphs.statistics import graph_stats, node_stats, spectral


def run(fn, graph, node_ids=None, options=None):
    seen = []
    result = fn(serialize_graph(graph), node_ids, options or {}, seen.append)
    return result, seen


class TestScenarioTriangle:
    def test_degree_clustering_cliques(self, triangle):
        assert run(node_stats.degree_compute, triangle)[0] == {"A": 2, "B": 2, "C": 2}
        assert run(node_stats.clustering_compute, triangle)[0] == {"A": 1.0, "B": 1.0, "C": 1.0}
        assert run(node_stats.cliques_compute, triangle)[0] == {"A": 1, "B": 1, "C": 1}


class TestScenarioPath:
    def test_betweenness_ordering(self, path4):
        bc, _ = run(node_stats.betweenness_compute, path4)
        assert bc["A"] == bc["D"] == 0
        assert bc["B"] == pytest.approx(bc["C"])
        assert bc["B"] > 0

    def test_diameter_and_average_path(self, path4):
        assert run(graph_stats.diameter_compute, path4)[0] == 3
        assert run(graph_stats.average_shortest_path_compute, path4)[0] == pytest.approx(20 / 12)


class TestNodeStatistics:
    def test_betweenness_matches_networkx(self, karate):
        ours, _ = run(node_stats.betweenness_compute, karate)
        ref = nx.betweenness_centrality(to_networkx(karate))
        for node, value in ref.items():
            assert ours[node] == pytest.approx(value, abs=1e-9)

    def test_betweenness_small_graphs_are_zero(self):
        g = graph_from_edges([("A", "B")])
        assert run(node_stats.betweenness_compute, g)[0] == {"A": 0.0, "B": 0.0}

    def test_star_hub_dominates_betweenness(self, star):
        bc, _ = run(node_stats.betweenness_compute, star)
        assert all(v >= 0 for v in bc.values())
        assert all(bc["A"] > bc[leaf] for leaf in "BCD")

    def test_closeness_matches_networkx(self, karate):
        ours, _ = run(node_stats.closeness_compute, karate)
        ref = nx.closeness_centrality(to_networkx(karate))
        for node, value in ref.items():
            assert ours[node] == pytest.approx(value)

    def test_closeness_isolated_node_is_zero(self):
        g = graph_from_edges([("A", "B")], nodes=["Z"])
        result, _ = run(node_stats.closeness_compute, g)
        assert result["Z"] == 0.0
        assert all(math.isfinite(v) for v in result.values())

    def test_clustering_matches_networkx_and_is_bounded(self, karate):
        ours, _ = run(node_stats.clustering_compute, karate)
        ref = nx.clustering(to_networkx(karate))
        for node, value in ref.items():
            assert 0.0 <= ours[node] <= 1.0
            assert ours[node] == pytest.approx(value)

    def test_complete_graph_clustering_is_one(self, complete5):
        ours, _ = run(node_stats.clustering_compute, complete5)
        assert set(ours.values()) == {1.0}

    def test_ego_density(self, star, triangle):
        assert run(node_stats.ego_density_compute, star)[0]["A"] == 0.0
        assert run(node_stats.ego_density_compute, star)[0]["B"] == 0.0
        assert run(node_stats.ego_density_compute, triangle)[0]["A"] == 1.0

    def test_eigenvector_path_interior_beats_endpoints(self):
        for n in (4, 5, 6):
            g = graph_from_edges([(i, i + 1) for i in range(n - 1)])
            ev, _ = run(node_stats.eigenvector_compute, g)
            assert all(v >= 0 for v in ev.values())
            assert sum(v * v for v in ev.values()) == pytest.approx(1.0, abs=1e-6)
            for interior in range(1, n - 1):
                assert ev[interior] > ev[0]
                assert ev[interior] > ev[n - 1]

    def test_cliques_match_networkx(self, karate):
        ours, _ = run(node_stats.cliques_compute, karate)
        expected = {node: 0 for node in karate.get_node_list()}
        for clique in nx.find_cliques(to_networkx(karate)):
            for node in clique:
                expected[node] += 1
        assert ours == expected

    def test_node_subset_is_respected(self, karate):
        result, _ = run(node_stats.betweenness_compute, karate, node_ids=[0, 33])
        assert set(result) == {0, 33}

    def test_laplacian_coordinates_are_orthogonal_to_constant(self, karate):
        coords, _ = run(spectral.laplacian_compute, karate, options={"seed": 7})
        xs = [c["laplacian_x"] for c in coords.values()]
        ys = [c["laplacian_y"] for c in coords.values()]
        assert abs(sum(xs)) < 1e-6
        assert abs(sum(ys)) < 1e-6
        assert abs(sum(x * y for x, y in zip(xs, ys))) < 1e-6

    def test_laplacian_small_graph_falls_back_to_random(self):
        g = graph_from_edges([("A", "B")])
        coords, _ = run(spectral.laplacian_compute, g, options={"seed": 1})
        assert set(coords) == {"A", "B"}
        for c in coords.values():
            assert -1.0 <= c["laplacian_x"] <= 1.0


class TestGraphStatistics:
    def test_star_scenario(self, star):
        assert run(graph_stats.density_compute, star)[0] == pytest.approx(0.5)
        assert run(graph_stats.average_degree_compute, star)[0] == pytest.approx(1.5)
        assert run(graph_stats.connected_components_compute, star)[0]["count"] == 1

    def test_disconnected_scenario(self, two_pairs):
        cc, _ = run(graph_stats.connected_components_compute, two_pairs)
        assert cc["count"] == 2
        assert cc["components"]["A"] == cc["components"]["B"] != cc["components"]["C"]
        assert run(graph_stats.diameter_compute, two_pairs)[0] == 1

    def test_average_clustering_and_transitivity(self, karate):
        G = to_networkx(karate)
        assert run(graph_stats.average_clustering_compute, karate)[0] == pytest.approx(nx.average_clustering(G))
        assert run(graph_stats.transitivity_compute, karate)[0] == pytest.approx(nx.transitivity(G))

    def test_empty_graph_statistics(self):
        empty = {"nodes": [], "edges": []}
        assert graph_stats.density_compute(empty) == 0.0
        assert graph_stats.diameter_compute(empty) == 0
        assert graph_stats.average_shortest_path_compute(empty) == 0.0


class TestProgress:
    @pytest.mark.parametrize("fn", [
        node_stats.degree_compute,
        node_stats.betweenness_compute,
        node_stats.eigenvector_compute,
        node_stats.cliques_compute,
        graph_stats.density_compute,
        graph_stats.diameter_compute,
    ])
    def test_progress_is_monotonic_and_ends_at_one(self, fn, karate):
        _, seen = run(fn, karate)
        assert seen, "no progress reported"
        assert seen == sorted(seen)
        assert all(0.0 <= p <= 1.0 for p in seen)
        assert seen[-1] == 1.0
        assert len(seen) <= 101

    def test_density_of_tiny_graph_still_finishes(self):
        g = graph_from_edges([], nodes=["A"])
        _, seen = run(graph_stats.density_compute, g)
        assert seen == [1.0]


class TestFacade:
    def test_factory_normalises_names(self):
        assert StatisticAlgorithm("Ego_Density").name == "ego-density"
        assert StatisticAlgorithm("egodensity").name == "ego-density"

    def test_unknown_statistic(self):
        with pytest.raises(InputError):
            StatisticAlgorithm("pagerank")

    def test_layout_key_is_not_a_statistic(self):
        with pytest.raises(InputError):
            StatisticAlgorithm("circular")

    def test_scope_flags(self):
        assert StatisticAlgorithm("degree").is_node_level()
        assert StatisticAlgorithm("density").is_graph_level()

    def test_listing(self):
        node_level = NetworkStatistics.list_node_statistics()
        graph_level = NetworkStatistics.list_graph_statistics()
        assert {"degree", "closeness", "betweenness", "clustering", "eigenvector",
                "cliques", "ego-density", "eigenvector-laplacian"} <= set(node_level)
        assert {"density", "diameter", "average-clustering", "average-shortest-path",
                "connected-components", "average-degree"} <= set(graph_level)
        info = NetworkStatistics.get_algorithm_info("closeness")
        assert info["options"]["normalized"] is True
        assert info["complexity"]

    def test_compute_inline(self, triangle):
        assert StatisticAlgorithm("degree").compute_inline(triangle) == {"A": 2, "B": 2, "C": 2}

    def test_analyze_records_and_frame(self, barbell):
        stats = NetworkStatistics()
        records = stats.analyze(barbell, ["degree", "modularity"])
        assert records[0]["id"] == 0
        assert records[3]["degree"] == 4
        assert records[0]["modularity"] != records[7]["modularity"]
        frame = stats.analyze_frame(barbell, ["degree", "clustering"])
        assert list(frame.columns) == ["degree", "clustering"]
        assert frame.loc[0, "clustering"] == pytest.approx(1.0)

    def test_analyze_rejects_graph_level_feature(self, triangle):
        with pytest.raises(InputError):
            NetworkStatistics().analyze(triangle, ["density"])
