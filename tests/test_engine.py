"""
Unit tests for the scipy.fft backed engine and the transform adapter.

Tests verify:
- Plan creation accepts supported powers of two only
- Ordered layouts (complex interleaved, real DC/Nyquist packing)
- Unnormalized inverse (backward(forward(x)) == N x)
- Packed layout is an exact, invertible permutation
- Adapter forward paths agree and inverse accepts either layout
"""

import numpy as np
import pytest

from fft_oracle.adapter import Layout, Spectrum, TransformAdapter
from fft_oracle.engine import (
    ALIGNMENT,
    DEFAULT_ENGINE,
    Direction,
    Domain,
    PlanError,
    aligned_malloc,
    float_count,
    is_power_of_two,
    min_size,
)


def _random_buffer(n_floats, seed=0):
    rng = np.random.default_rng(seed)
    buf = aligned_malloc(n_floats)
    buf[:] = rng.uniform(-1.0, 1.0, n_floats).astype(np.float32)
    return buf


class TestPlanSetup:
    """Tests for plan creation and lifetime"""

    def test_power_of_two_helper(self):
        """Only positive powers of two qualify"""
        assert [v for v in range(0, 70) if is_power_of_two(v)] == [1, 2, 4, 8, 16, 32, 64]

    def test_plan_sizes(self):
        """Plan records length, domain and float count"""
        plan = DEFAULT_ENGINE.new_setup(64, Domain.COMPLEX)
        assert plan.n == 64
        assert plan.n_floats == 128
        plan = DEFAULT_ENGINE.new_setup(64, Domain.REAL)
        assert plan.n_floats == 64
        assert plan.n_cells == 32

    @pytest.mark.parametrize("n", [0, 3, 48, 100, -32])
    def test_rejects_non_power_of_two(self, n):
        """Lengths that are not powers of two raise PlanError"""
        with pytest.raises(PlanError):
            DEFAULT_ENGINE.new_setup(n, Domain.COMPLEX)

    def test_rejects_too_small(self):
        """Lengths below the packed layout minimum raise PlanError"""
        with pytest.raises(PlanError):
            DEFAULT_ENGINE.new_setup(min_size(Domain.COMPLEX) // 2, Domain.COMPLEX)
        with pytest.raises(PlanError):
            DEFAULT_ENGINE.new_setup(min_size(Domain.REAL) // 2, Domain.REAL)

    def test_rejects_unknown_domain(self):
        """Domain must be a Domain member"""
        with pytest.raises(PlanError):
            DEFAULT_ENGINE.new_setup(64, "complex")

    def test_plan_error_is_value_error(self):
        """Setup failures are ValueErrors"""
        assert issubclass(PlanError, ValueError)

    def test_destroy_setup(self):
        """Plans are released through the engine"""
        plan = DEFAULT_ENGINE.new_setup(64, Domain.COMPLEX)
        DEFAULT_ENGINE.destroy_setup(plan)
        assert not plan.alive

    def test_float_count(self):
        assert float_count(64, Domain.COMPLEX) == 128
        assert float_count(64, Domain.REAL) == 64

    def test_destroyed_plan_cannot_be_used(self):
        """Any transform on a destroyed plan raises PlanError"""
        plan = DEFAULT_ENGINE.new_setup(32, Domain.REAL)
        x = aligned_malloc(32)
        y = aligned_malloc(32)
        plan.destroy()
        assert not plan.alive
        with pytest.raises(PlanError):
            DEFAULT_ENGINE.transform_ordered(plan, x, y, None, Direction.FORWARD)


class TestBuffers:
    """Tests for aligned buffer allocation and buffer validation"""

    def test_aligned_malloc(self):
        """Buffers are zeroed float32 on an ALIGNMENT boundary"""
        for n_floats in (32, 64, 130):
            buf = aligned_malloc(n_floats)
            assert buf.dtype == np.float32
            assert buf.size == n_floats
            assert buf.ctypes.data % ALIGNMENT == 0
            assert not buf.any()

    def test_aligned_malloc_rejects_empty(self):
        with pytest.raises(ValueError):
            aligned_malloc(0)

    def test_wrong_buffer_size(self):
        """Buffers must match the plan's float count"""
        plan = DEFAULT_ENGINE.new_setup(32, Domain.COMPLEX)
        with pytest.raises(ValueError):
            DEFAULT_ENGINE.transform_ordered(plan, aligned_malloc(32), aligned_malloc(64))

    def test_wrong_buffer_dtype(self):
        plan = DEFAULT_ENGINE.new_setup(32, Domain.REAL)
        with pytest.raises(ValueError):
            DEFAULT_ENGINE.transform_ordered(plan, np.zeros(32), aligned_malloc(32))

    def test_work_must_not_overlap(self):
        """The packed transform refuses a work buffer aliasing its output"""
        plan = DEFAULT_ENGINE.new_setup(32, Domain.REAL)
        x = aligned_malloc(32)
        y = aligned_malloc(32)
        with pytest.raises(ValueError):
            DEFAULT_ENGINE.transform(plan, x, y, y, Direction.FORWARD)


class TestOrderedTransforms:
    """Tests for the ordered spectrum layouts"""

    def test_complex_forward_matches_numpy(self):
        """Complex ordered output is the interleaved DFT"""
        n = 64
        plan = DEFAULT_ENGINE.new_setup(n, Domain.COMPLEX)
        x = _random_buffer(2 * n)
        y = aligned_malloc(2 * n)
        DEFAULT_ENGINE.transform_ordered(plan, x, y, None, Direction.FORWARD)

        expected = np.fft.fft(x[0::2].astype(np.float64) + 1j * x[1::2])
        assert np.allclose(y[0::2], expected.real, atol=1e-4)
        assert np.allclose(y[1::2], expected.imag, atol=1e-4)

    def test_real_forward_packs_dc_and_nyquist(self):
        """Real ordered output is [DC, Nyquist, re1, im1, ...]"""
        n = 32
        plan = DEFAULT_ENGINE.new_setup(n, Domain.REAL)
        x = _random_buffer(n, seed=1)
        y = aligned_malloc(n)
        DEFAULT_ENGINE.transform_ordered(plan, x, y, None, Direction.FORWARD)

        expected = np.fft.rfft(x.astype(np.float64))
        assert np.isclose(y[0], expected[0].real, atol=1e-5), "DC must sit at offset 0"
        assert np.isclose(y[1], expected[n // 2].real, atol=1e-5), "Nyquist must sit at offset 1"
        assert np.allclose(y[2::2], expected[1:n // 2].real, atol=1e-5)
        assert np.allclose(y[3::2], expected[1:n // 2].imag, atol=1e-5)

    @pytest.mark.parametrize("domain", [Domain.COMPLEX, Domain.REAL])
    def test_inverse_is_unnormalized(self, domain):
        """backward(forward(x)) reproduces N * x"""
        n = 128
        plan = DEFAULT_ENGINE.new_setup(n, domain)
        x = _random_buffer(plan.n_floats, seed=2)
        y = aligned_malloc(plan.n_floats)
        z = aligned_malloc(plan.n_floats)
        DEFAULT_ENGINE.transform_ordered(plan, x, y, None, Direction.FORWARD)
        DEFAULT_ENGINE.transform_ordered(plan, y, z, None, Direction.BACKWARD)
        assert np.allclose(z / n, x, atol=1e-5)

    def test_unknown_direction(self):
        plan = DEFAULT_ENGINE.new_setup(32, Domain.REAL)
        with pytest.raises(ValueError):
            DEFAULT_ENGINE.transform_ordered(plan, aligned_malloc(32), aligned_malloc(32),
                                             None, "forward")


class TestPackedLayout:
    """Tests for the packed layout and zreorder"""

    def test_simd_size(self):
        assert DEFAULT_ENGINE.simd_size() == 4

    def test_packed_cell_positions(self):
        """Packed cell 4r + lane holds ordered cell lane * (cells / 4) + r"""
        plan = DEFAULT_ENGINE.new_setup(32, Domain.COMPLEX)
        ordered = aligned_malloc(64)
        ordered[:] = np.arange(64, dtype=np.float32)
        packed = aligned_malloc(64)
        DEFAULT_ENGINE.zreorder(plan, ordered, packed, Direction.BACKWARD)

        cells = packed.reshape(-1, 2)
        lanes = plan.n_cells // 4
        for r in range(lanes):
            for lane in range(4):
                src = lane * lanes + r
                assert cells[4 * r + lane, 0] == 2 * src
                assert cells[4 * r + lane, 1] == 2 * src + 1

    def test_real_dc_nyquist_cell_stays_first(self):
        """Cell 0 (DC, Nyquist) keeps its place in the packed layout"""
        plan = DEFAULT_ENGINE.new_setup(64, Domain.REAL)
        ordered = _random_buffer(64, seed=3)
        packed = aligned_malloc(64)
        DEFAULT_ENGINE.zreorder(plan, ordered, packed, Direction.BACKWARD)
        assert packed[0] == ordered[0]
        assert packed[1] == ordered[1]
        assert not np.array_equal(packed, ordered), "Packed layout should not be the identity"

    @pytest.mark.parametrize("domain", [Domain.COMPLEX, Domain.REAL])
    def test_reorder_round_trip_is_exact(self, domain):
        """zreorder(zreorder(x, FORWARD), BACKWARD) == x bit for bit"""
        plan = DEFAULT_ENGINE.new_setup(256, domain)
        packed = _random_buffer(plan.n_floats, seed=4)
        ordered = aligned_malloc(plan.n_floats)
        restored = aligned_malloc(plan.n_floats)
        DEFAULT_ENGINE.zreorder(plan, packed, ordered, Direction.FORWARD)
        DEFAULT_ENGINE.zreorder(plan, ordered, restored, Direction.BACKWARD)
        assert np.array_equal(restored, packed)

    def test_reorder_in_place(self):
        """Input and output may be the same buffer"""
        plan = DEFAULT_ENGINE.new_setup(64, Domain.COMPLEX)
        buf = _random_buffer(128, seed=5)
        original = buf.copy()
        DEFAULT_ENGINE.zreorder(plan, buf, buf, Direction.BACKWARD)
        DEFAULT_ENGINE.zreorder(plan, buf, buf, Direction.FORWARD)
        assert np.array_equal(buf, original)

    @pytest.mark.parametrize("domain", [Domain.COMPLEX, Domain.REAL])
    def test_packed_transform_reorders_to_ordered(self, domain):
        """Packed forward output reordered equals the ordered forward output"""
        plan = DEFAULT_ENGINE.new_setup(128, domain)
        x = _random_buffer(plan.n_floats, seed=6)
        work = aligned_malloc(plan.n_floats)
        packed = aligned_malloc(plan.n_floats)
        reordered = aligned_malloc(plan.n_floats)
        direct = aligned_malloc(plan.n_floats)

        DEFAULT_ENGINE.transform(plan, x, packed, work, Direction.FORWARD)
        DEFAULT_ENGINE.zreorder(plan, packed, reordered, Direction.FORWARD)
        DEFAULT_ENGINE.transform_ordered(plan, x, direct, work, Direction.FORWARD)
        assert np.array_equal(reordered, direct)

    def test_packed_backward(self):
        """Packed backward transform accepts the packed spectrum"""
        n = 64
        plan = DEFAULT_ENGINE.new_setup(n, Domain.REAL)
        x = _random_buffer(n, seed=7)
        packed = aligned_malloc(n)
        z = aligned_malloc(n)
        DEFAULT_ENGINE.transform(plan, x, packed, None, Direction.FORWARD)
        DEFAULT_ENGINE.transform(plan, packed, z, None, Direction.BACKWARD)
        assert np.allclose(z / n, x, atol=1e-5)


class TestTransformAdapter:
    """Tests for the adapter's forward paths, reorder and inverse"""

    @pytest.mark.parametrize("domain", [Domain.COMPLEX, Domain.REAL])
    def test_both_forward_paths_agree(self, domain):
        plan = DEFAULT_ENGINE.new_setup(64, domain)
        adapter = TransformAdapter(plan, plan.n, plan.domain)
        x = _random_buffer(plan.n_floats, seed=8)
        w = aligned_malloc(plan.n_floats)
        y_ordered = aligned_malloc(plan.n_floats)
        y_packed = aligned_malloc(plan.n_floats)

        a = adapter.forward(x, y_ordered, w, Layout.ORDERED)
        b = adapter.forward(x, y_packed, w, Layout.PACKED)
        assert a.layout is Layout.ORDERED
        assert b.layout is Layout.ORDERED, "Packed path must hand back an ordered spectrum"
        assert b.data is y_packed
        assert np.array_equal(a.data, b.data)

    def test_reorder_directions(self):
        plan = DEFAULT_ENGINE.new_setup(32, Domain.COMPLEX)
        adapter = TransformAdapter(plan, plan.n, plan.domain)
        x = _random_buffer(64, seed=9)
        w = aligned_malloc(64)
        packed = adapter.forward_packed(x, aligned_malloc(64), w)

        ordered = adapter.reorder(packed, aligned_malloc(64), Direction.FORWARD)
        back = adapter.reorder(ordered, aligned_malloc(64), Direction.BACKWARD)
        assert ordered.layout is Layout.ORDERED
        assert np.array_equal(back.data, packed.data)

        with pytest.raises(ValueError):
            adapter.reorder(ordered, aligned_malloc(64), Direction.FORWARD)
        with pytest.raises(ValueError):
            adapter.reorder(packed, aligned_malloc(64), Direction.BACKWARD)

    def test_inverse_accepts_packed_spectrum(self):
        """A packed spectrum is reordered before the inverse"""
        n = 64
        plan = DEFAULT_ENGINE.new_setup(n, Domain.COMPLEX)
        adapter = TransformAdapter(plan, plan.n, plan.domain)
        x = _random_buffer(2 * n, seed=10)
        w = aligned_malloc(2 * n)
        packed = adapter.forward_packed(x, aligned_malloc(2 * n), w)
        z = adapter.inverse(packed, aligned_malloc(2 * n), w)
        assert np.allclose(z / n, x, atol=1e-5)

    def test_inverse_reorders_into_scratch(self):
        """A packed spectrum is reordered into the caller's scratch buffer"""
        n = 32
        plan = DEFAULT_ENGINE.new_setup(n, Domain.REAL)
        adapter = TransformAdapter(plan, n, Domain.REAL)
        x = _random_buffer(n, seed=11)
        w = aligned_malloc(n)
        packed = adapter.forward_packed(x, aligned_malloc(n), w)
        scratch = aligned_malloc(n)
        z = adapter.inverse(packed, aligned_malloc(n), w, scratch=scratch)

        expected = packed.to_ordered(plan)
        assert np.array_equal(scratch, expected.data)
        assert np.allclose(z / n, x, atol=1e-5)

    def test_spectrum_conversion_identity(self):
        """Converting to the layout a spectrum already has returns it unchanged"""
        plan = DEFAULT_ENGINE.new_setup(32, Domain.REAL)
        s = Spectrum(aligned_malloc(32), 32, Domain.REAL, Layout.ORDERED)
        assert s.to_ordered(plan) is s
        p = s.to_packed(plan)
        assert p.to_packed(plan) is p
