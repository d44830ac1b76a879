import math

import numpy as np
import pytest

from conftest import graph_from_edges
from netlab_dispatch.core.errors import InputError, PreconditionError
from netlab_graphs import Layout, list_layouts, serialize_graph
from netlab_graphs.layout import (
    bfs_layout_compute,
    bipartite_layout_compute,
    circular_layout_compute,
    force_directed_layout_compute,
    kamada_kawai_layout_compute,
    multipartite_layout_compute,
    random_layout_compute,
    rescale_layout,
    shell_layout_compute,
    spectral_layout_compute,
    spiral_layout_compute,
)
from netlab_graphs.statistics.spectral import laplacian_compute

SELF_CONTAINED = [
    random_layout_compute,
    circular_layout_compute,
    spiral_layout_compute,
    shell_layout_compute,
    force_directed_layout_compute,
    kamada_kawai_layout_compute,
    bipartite_layout_compute,
    multipartite_layout_compute,
    bfs_layout_compute,
]


def max_offset(positions, center=(0.0, 0.0)):
    return max(
        max(abs(p["x"] - center[0]), abs(p["y"] - center[1])) for p in positions.values()
    )


class TestSharedContract:
    @pytest.mark.parametrize("fn", SELF_CONTAINED)
    def test_positions_cover_nodes_and_respect_scale(self, fn, karate):
        options = {"scale": 2.0, "center": {"x": 1.0, "y": -3.0}, "seed": 11}
        positions = fn(serialize_graph(karate), options)
        assert set(positions) == set(karate.get_node_list())
        assert all(math.isfinite(p["x"]) and math.isfinite(p["y"]) for p in positions.values())
        assert max_offset(positions, (1.0, -3.0)) == pytest.approx(2.0)

    @pytest.mark.parametrize("fn", SELF_CONTAINED + [spectral_layout_compute])
    def test_empty_and_single_node_base_cases(self, fn):
        assert fn({"nodes": [], "edges": []}, {}) == {}
        single = fn({"nodes": ["only"], "edges": []}, {"center": [4, 5]})
        assert single == {"only": {"x": 4.0, "y": 5.0}}

    @pytest.mark.parametrize("fn", SELF_CONTAINED)
    def test_progress_ends_at_one(self, fn, path4):
        seen = []
        fn(serialize_graph(path4), {"seed": 1}, seen.append)
        assert seen and seen[-1] == 1.0
        assert seen == sorted(seen)

    def test_deterministic_layouts_repeat(self, karate):
        data = serialize_graph(karate)
        for fn in (circular_layout_compute, force_directed_layout_compute, kamada_kawai_layout_compute):
            assert fn(data, {}) == fn(data, {})

    def test_seeded_random_layout_repeats(self, karate):
        data = serialize_graph(karate)
        assert random_layout_compute(data, {"seed": 5}) == random_layout_compute(data, {"seed": 5})


class TestRescale:
    def test_coincident_points_collapse_to_center(self):
        pos = rescale_layout(np.ones((4, 2)), scale=3.0)
        assert np.allclose(pos, 0.0)

    def test_max_abs_equals_scale(self):
        pos = rescale_layout(np.array([[0.0, 0.0], [10.0, 2.0], [4.0, 7.0]]), scale=0.5)
        assert np.abs(pos).max() == pytest.approx(0.5)
        assert np.allclose(pos.mean(axis=0), 0.0)


class TestIndividualLayouts:
    def test_circular_points_share_a_radius(self, karate):
        positions = circular_layout_compute(serialize_graph(karate), {})
        radii = {round(math.hypot(p["x"], p["y"]), 9) for p in positions.values()}
        assert len(radii) == 1

    def test_circular_order_option(self, path4):
        positions = circular_layout_compute(serialize_graph(path4), {"order": ["C", "A"]})
        assert positions["C"]["x"] == pytest.approx(1.0)
        assert positions["C"]["y"] == pytest.approx(0.0)

    def test_shell_singleton_first_shell_is_centered(self, star):
        positions = shell_layout_compute(
            serialize_graph(star), {"nlist": [["A"], ["B", "C", "D"]], "center": {"x": 2, "y": 2}}
        )
        assert positions["A"] == {"x": 2.0, "y": 2.0}
        for leaf in "BCD":
            assert math.hypot(positions[leaf]["x"] - 2, positions[leaf]["y"] - 2) == pytest.approx(1.0)

    def test_shell_default_uses_degree_shells(self, star):
        positions = shell_layout_compute(serialize_graph(star), {})
        assert positions["A"] == {"x": 0.0, "y": 0.0}

    def test_spiral_equidistant(self, karate):
        positions = spiral_layout_compute(serialize_graph(karate), {"equidistant": True})
        assert max_offset(positions) == pytest.approx(1.0)

    @pytest.mark.parametrize("resolution", [0, -0.5])
    def test_equidistant_spiral_rejects_non_positive_resolution(self, karate, resolution):
        with pytest.raises(InputError):
            spiral_layout_compute(serialize_graph(karate), {"equidistant": True, "resolution": resolution})

    def test_bipartite_uses_two_lines(self):
        g = graph_from_edges([(u, v) for u in "abc" for v in "xy"])
        positions = bipartite_layout_compute(serialize_graph(g), {"partition": ["a", "b", "c"]})
        left = {round(positions[n]["x"], 9) for n in "abc"}
        right = {round(positions[n]["x"], 9) for n in "xy"}
        assert len(left) == 1 and len(right) == 1 and left != right

    def test_bipartite_horizontal_alignment(self):
        g = graph_from_edges([(u, v) for u in "abc" for v in "xy"])
        positions = bipartite_layout_compute(serialize_graph(g), {"align": "horizontal"})
        top = {round(positions[n]["y"], 9) for n in "abc"}
        assert len(top) == 1

    def test_bad_alignment(self, path4):
        with pytest.raises(InputError):
            bipartite_layout_compute(serialize_graph(path4), {"align": "diagonal"})

    def test_multipartite_subsets(self, path4):
        positions = multipartite_layout_compute(
            serialize_graph(path4), {"subsets": {0: ["A"], 1: ["B", "C"], 2: ["D"]}}
        )
        xs = [positions[n]["x"] for n in "ABD"]
        assert xs == sorted(xs)
        assert positions["B"]["x"] == pytest.approx(positions["C"]["x"])

    def test_bfs_layers_follow_distance(self, path4):
        positions = bfs_layout_compute(serialize_graph(path4), {"start": "A"})
        xs = [positions[n]["x"] for n in "ABCD"]
        assert xs == sorted(xs)
        assert len(set(xs)) == 4

    def test_bfs_unreachable_nodes_get_extra_layer(self, two_pairs):
        positions = bfs_layout_compute(serialize_graph(two_pairs), {"start": "A"})
        assert positions["C"]["x"] == pytest.approx(positions["D"]["x"])
        assert positions["C"]["x"] > positions["B"]["x"]

    def test_bfs_unknown_start(self, path4):
        with pytest.raises(InputError):
            bfs_layout_compute(serialize_graph(path4), {"start": "Z"})

    def test_force_directed_pulls_neighbours_closer(self, barbell):
        positions = force_directed_layout_compute(serialize_graph(barbell), {"iterations": 100})

        def dist(a, b):
            return math.hypot(positions[a]["x"] - positions[b]["x"], positions[a]["y"] - positions[b]["y"])

        assert dist(0, 1) < dist(0, 7)

    def test_kamada_kawai_respects_graph_distance(self, path4):
        positions = kamada_kawai_layout_compute(serialize_graph(path4), {})

        def dist(a, b):
            return math.hypot(positions[a]["x"] - positions[b]["x"], positions[a]["y"] - positions[b]["y"])

        assert dist("A", "B") < dist("A", "D")


class TestSpectral:
    def test_missing_coordinates_raise_precondition(self, path4):
        with pytest.raises(PreconditionError) as info:
            spectral_layout_compute(serialize_graph(path4), {})
        assert info.value.requirement == "eigenvector-laplacian"
        assert "eigenvector-laplacian" in str(info.value)

    def test_uses_laplacian_coordinates(self, karate):
        data = serialize_graph(karate)
        coords = laplacian_compute(data, None, {"seed": 2})
        positions = spectral_layout_compute(data, {"node_properties": coords, "scale": 3})
        assert set(positions) == set(karate.get_node_list())
        assert max_offset(positions) == pytest.approx(3.0)


class TestLayoutFacade:
    def test_required_stats(self):
        assert Layout("spectral").required_stats == ["eigenvector-laplacian"]
        assert Layout("circular").required_stats == []

    def test_statistic_is_not_a_layout(self):
        with pytest.raises(InputError):
            Layout("degree")

    def test_listing_has_all_layouts(self):
        keys = {entry["id"] for entry in list_layouts()}
        assert keys == {
            "random", "circular", "spiral", "shell", "spectral", "force-directed",
            "kamada-kawai", "bipartite", "multipartite", "bfs",
        }

    def test_compute_inline(self, triangle):
        positions = Layout("circular", scale=5).compute_inline(triangle)
        assert max_offset(positions) == pytest.approx(5.0)
