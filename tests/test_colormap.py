"""Tests for Colormap control points and Lab lookup."""

import logging

import numpy as np
import pytest

from labmap import Colormap, ControlPoint
from labmap.colorspace import rgb_to_lab

BLACK = (0.0, 0.0, 0.0)
WHITE = (1.0, 1.0, 1.0)
RED = (1.0, 0.0, 0.0)
BLUE = (0.0, 0.0, 1.0)


class TestControlPoints:
    """Insertion, replacement and removal."""

    def test_points_stay_sorted(self):
        """Any insertion order yields strictly ascending values."""
        rng = np.random.default_rng(1)
        cmap = Colormap()
        for value in rng.integers(-50, 50, size=200):
            cmap.add_control_point(float(value) / 10.0, rng.random(3))

        values = cmap.values
        assert all(v0 < v1 for v0, v1 in zip(values, values[1:]))
        assert len(set(values)) == len(cmap)

    def test_add_replaces_same_value(self):
        cmap = Colormap()
        cmap.add_control_point(0.5, RED)
        cmap.add_control_point(0.5, BLUE)

        assert cmap.control_points == (ControlPoint(0.5, BLUE),)

    def test_rgba_alpha_is_dropped(self):
        cmap = Colormap()
        cmap.add_control_point(0.0, (0.1, 0.2, 0.3, 0.4))
        assert cmap.control_points[0].color == (0.1, 0.2, 0.3)

    def test_bad_color_rejected(self):
        cmap = Colormap([(0.0, RED)])
        with pytest.raises(ValueError):
            cmap.add_control_point(0.0, (1.0, 0.0))
        # Failed add leaves the existing point alone
        assert cmap.control_points == (ControlPoint(0.0, RED),)

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), -float("inf")])
    def test_non_finite_value_rejected(self, value):
        cmap = Colormap()
        with pytest.raises(ValueError):
            cmap.add_control_point(value, RED)
        assert len(cmap) == 0

    def test_remove_existing(self):
        cmap = Colormap([(0.0, BLACK), (0.5, RED), (1.0, WHITE)])

        assert cmap.remove_control_point(0.5) is True
        assert cmap.values == (0.0, 1.0)

    def test_remove_missing_warns(self, caplog):
        """A miss returns False and logs a warning instead of raising."""
        cmap = Colormap([(0.0, BLACK), (1.0, WHITE)])

        with caplog.at_level(logging.WARNING, logger="labmap.colormap"):
            assert cmap.remove_control_point(0.25) is False
        assert "0.25" in caplog.text
        assert len(cmap) == 2

    def test_remove_missing_quiet(self, caplog):
        cmap = Colormap()
        with caplog.at_level(logging.WARNING, logger="labmap.colormap"):
            assert cmap.remove_control_point(1.0, warn_on_not_found=False) is False
        assert caplog.text == ""

    def test_remove_requires_exact_value(self):
        """Identity is exact float equality, no tolerance."""
        cmap = Colormap([(0.1 + 0.2, RED)])
        assert cmap.remove_control_point(0.3, warn_on_not_found=False) is False
        assert cmap.remove_control_point(0.1 + 0.2) is True

    def test_copy_is_independent(self):
        cmap = Colormap([(0.0, BLACK), (1.0, WHITE)], name="gray")
        snapshot = cmap.copy()
        cmap.add_control_point(0.5, RED)

        assert len(snapshot) == 2
        assert snapshot.name == "gray"
        assert snapshot != cmap

    def test_equality_ignores_name(self):
        a = Colormap([(0.0, BLACK), (1.0, WHITE)], name="a")
        b = Colormap([(1.0, WHITE), (0.0, BLACK)], name="b")
        assert a == b

    def test_iteration_yields_control_points(self):
        cmap = Colormap([(1.0, WHITE), (0.0, BLACK)])
        assert [pt.value for pt in cmap] == [0.0, 1.0]


class TestDegenerateLookup:
    """Empty and single-point colormaps."""

    def test_empty_is_black(self):
        cmap = Colormap()
        for value in (-100.0, 0.0, 0.5, 1e9):
            assert cmap.lookup_color(value) == BLACK

    def test_single_point_everywhere(self):
        color = (0.2, 0.6, 0.4)
        cmap = Colormap([(0.3, color)])
        for value in (-1e9, -5.0, 0.0, 0.3, 7.0, 1e9):
            assert cmap.lookup_color(value) == color

    def test_vectorized_degenerate(self):
        values = np.linspace(-2, 2, 5)
        np.testing.assert_array_equal(Colormap().lookup_colors(values), np.zeros((5, 3)))

        single = Colormap([(0.0, RED)]).lookup_colors(values)
        np.testing.assert_array_equal(single, np.tile(RED, (5, 1)))

    def test_nan_on_degenerate_maps(self):
        """Scalar and vectorized lookups agree on NaN for empty/single maps."""
        nan = float("nan")
        for cmap in (Colormap(), Colormap([(0.0, RED)])):
            expected = cmap.lookup_color(nan)
            np.testing.assert_array_equal(cmap.lookup_colors([nan]), [expected])


class TestLookup:
    """Interpolation between control points."""

    def test_clamp_at_bounds(self):
        cmap = Colormap([(0.0, RED), (1.0, BLUE)])
        assert cmap.lookup_color(-5.0) == cmap.lookup_color(0.0) == RED
        assert cmap.lookup_color(5.0) == cmap.lookup_color(1.0) == BLUE

    def test_endpoints_exact(self):
        """Looking up a control point value returns its color."""
        points = [(-1.0, (0.1, 0.2, 0.9)), (0.25, (0.9, 0.5, 0.1)), (0.4, RED), (3.0, (0.3, 0.8, 0.3))]
        cmap = Colormap(points)
        for value, color in points:
            np.testing.assert_allclose(cmap.lookup_color(value), color, atol=1e-6)

    def test_black_white_midpoint_is_lab_midpoint(self):
        """Lab interpolation: L* halfway between black and white, not RGB 0.5."""
        cmap = Colormap([(0.0, BLACK), (1.0, WHITE)])
        mid = cmap.lookup_color(0.5)

        L_black = rgb_to_lab(*BLACK)[0]
        L_white = rgb_to_lab(*WHITE)[0]
        L_mid = rgb_to_lab(*mid)[0]
        np.testing.assert_allclose(L_mid, 0.5 * (L_black + L_white), atol=1e-4)

        # Neutral gray, but darker than a naive RGB lerp
        np.testing.assert_allclose(mid, [mid[0]] * 3, atol=5e-3)
        assert abs(mid[0] - 0.5) > 0.02

    def test_lab_channels_are_lerped(self):
        brick = (0.7, 0.4, 0.3)
        slate = (0.3, 0.4, 0.6)
        cmap = Colormap([(2.0, brick), (6.0, slate)])
        lab0 = np.array(rgb_to_lab(*brick), dtype=np.float64)
        lab1 = np.array(rgb_to_lab(*slate), dtype=np.float64)

        color = cmap.lookup_color(3.0)  # alpha = 0.25
        expected = 0.75 * lab0 + 0.25 * lab1
        np.testing.assert_allclose(rgb_to_lab(*color), expected, atol=1e-3)

    def test_uneven_spacing_picks_right_segment(self):
        cmap = Colormap([(0.0, BLACK), (0.1, RED), (0.9, BLUE), (1.0, WHITE)])
        # Inside [0.1, 0.9): blend of red and blue only, so green stays low
        r, g, b = cmap.lookup_color(0.5)
        assert g < 0.1
        assert r > 0.1 and b > 0.1

    def test_lookup_does_not_mutate(self):
        cmap = Colormap([(0.0, RED), (1.0, BLUE)])
        before = cmap.control_points
        cmap.lookup_color(0.3)
        cmap.lookup_colors(np.linspace(-1, 2, 7))
        assert cmap.control_points == before

    def test_results_in_gamut(self):
        """Saturated neighbours interpolate to clamped, valid colors."""
        cmap = Colormap([(0.0, (0.0, 1.0, 0.0)), (1.0, (1.0, 0.0, 1.0))])
        colors = cmap.lookup_colors(np.linspace(0, 1, 101))
        assert (colors >= 0).all()
        assert (colors <= 1).all()

    def test_nan_lookup_rejected(self):
        cmap = Colormap([(0.0, RED), (1.0, BLUE)])
        with pytest.raises(ValueError):
            cmap.lookup_color(float("nan"))
        with pytest.raises(ValueError):
            cmap.lookup_colors([0.5, float("nan")])

    def test_vectorized_matches_scalar(self):
        rng = np.random.default_rng(5)
        cmap = Colormap([(float(v), rng.random(3)) for v in np.sort(rng.random(12))])
        values = np.concatenate([rng.uniform(-0.5, 1.5, 200), list(cmap.values)])

        batch = cmap.lookup_colors(values)
        single = np.array([cmap.lookup_color(v) for v in values])
        np.testing.assert_allclose(batch, single, atol=1e-9)

    def test_vectorized_keeps_shape(self):
        cmap = Colormap([(0.0, BLACK), (1.0, WHITE)])
        assert cmap.lookup_colors(np.zeros((4, 5))).shape == (4, 5, 3)

    def test_many_points_binary_search(self):
        """Large maps look up the same as a brute-force scan would."""
        values = np.linspace(0.0, 1.0, 1001)
        cmap = Colormap([(float(v), (float(v), 0.0, 1.0 - float(v))) for v in values])

        for query in (0.00005, 0.3337, 0.5, 0.99999):
            i = int(np.searchsorted(values, query, side="right"))
            lo = cmap.control_points[i - 1].color
            hi = cmap.control_points[i].color
            color = np.array(cmap.lookup_color(query))
            # Result lies between the two bracketing colors
            assert np.all(color >= np.minimum(lo, hi) - 1e-4)
            assert np.all(color <= np.maximum(lo, hi) + 1e-4)
