"""Integration tests for the dataset generation pipeline.

Runs the published configuration on a coarse 10 ms grid, which keeps the
observer discretization stable (30 · 0.01 < 2) and the test fast.
"""

import dataclasses

import numpy as np
import pytest

from gpdata.config import default_config
from gpdata.datasets.io import load_gp_dataset, save_gp_data
from gpdata.datasets.types import GPDataset, PooledDataset
from gpdata.errors import DegenerateProjection, IntegrationDivergence, SamplingOutOfRange
from gpdata.gp.hyperparameters import BOUND_TOLERANCE, DEFAULT_LOG_BOUNDS
from gpdata.pipeline import excited_channels, generate_datasets, run_trajectory


@pytest.fixture(scope="module")
def config():
    return default_config(seed=42, dt=0.01)


@pytest.fixture(scope="module")
def results(config):
    return generate_datasets(config)


class TestGenerateDatasets:
    """End-to-end behaviour of generate_datasets."""

    def test_result_keys(self, results):
        assert set(results) == {"dataset_1", "dataset_2", "dataset_pooled"}
        assert isinstance(results["dataset_1"], GPDataset)
        assert isinstance(results["dataset_2"], GPDataset)
        assert isinstance(results["dataset_pooled"], PooledDataset)

    def test_scenario_a(self, results):
        ds = results["dataset_1"]
        assert ds.n_samples == 30
        assert np.all(np.diff(ds.times) > 0)
        assert ds.times[0] == pytest.approx(7.0)
        assert ds.times[-1] == pytest.approx(13.0)
        np.testing.assert_allclose(np.diff(ds.times), 6.0 / 29.0, atol=0.011)

    def test_scenario_b(self, results):
        ds = results["dataset_2"]
        assert ds.n_samples == 30
        assert np.all(np.diff(ds.times) > 0)
        assert ds.times[0] == pytest.approx(6.0)
        assert ds.times[-1] == pytest.approx(20.0)

    def test_scenario_c(self, results):
        pooled = results["dataset_pooled"]
        ds1, ds2 = results["dataset_1"], results["dataset_2"]
        assert pooled.n_samples == 60
        np.testing.assert_array_equal(pooled.X, np.vstack([ds1.X, ds2.X]))
        np.testing.assert_array_equal(pooled.Y, np.vstack([ds1.Y_noisy, ds2.Y_noisy]))
        assert pooled.sources == ("vanderpol_1", "vanderpol_2")

    def test_hyperparameters_positive(self, results):
        for key in ("dataset_1", "dataset_2", "dataset_pooled"):
            hyp = results[key].hyperparameters
            assert hyp.length_scales.shape == (6, 3)
            assert np.all(hyp.length_scales > 0)
            assert np.all(hyp.signal_variance[hyp.active] > 0)
            assert np.all(hyp.noise_variance > 0)

    def test_only_planar_velocities_are_fitted(self, results):
        """Fixed orientation: only vx and vy carry signal."""
        for key in ("dataset_1", "dataset_2", "dataset_pooled"):
            hyp = results[key].hyperparameters
            np.testing.assert_array_equal(hyp.active, [True, True, False, False, False, False])
            np.testing.assert_array_equal(hyp.signal_variance[2:], 0.0)

    def test_fits_inside_bounds(self, results):
        lo, hi = DEFAULT_LOG_BOUNDS
        for key in ("dataset_1", "dataset_2", "dataset_pooled"):
            log_hyp = results[key].hyperparameters.to_log_matrix()[:, :2]
            # x and y length-scales, signal std, noise std
            assert np.all(log_hyp[:2] > lo + BOUND_TOLERANCE), key
            assert np.all(log_hyp[3] > lo + BOUND_TOLERANCE), key
            assert np.all(log_hyp[3] < hi - BOUND_TOLERANCE), key
            assert np.all(log_hyp[4] < hi - BOUND_TOLERANCE), key
            # z is constant in the estimate, so its length-scale stays at the start value
            np.testing.assert_array_equal(log_hyp[2], 0.0)

    def test_excited_channels(self):
        Y = np.zeros((5, 3))
        Y[:, 0] = np.linspace(0.0, 1.0, 5)
        Y[:, 1] = 1e-15 * np.arange(5)
        np.testing.assert_array_equal(excited_channels(Y, np.full(3, 1e-2)), [True, False, False])
        np.testing.assert_array_equal(excited_channels(Y, np.zeros(3)), [True, False, False])

    def test_history_non_decreasing(self, results):
        for key in ("dataset_1", "dataset_2", "dataset_pooled"):
            for history in results[key].fit.history:
                assert np.all(np.diff(history) >= 0)

    def test_inputs_are_estimated_positions(self, results):
        """Sampled inputs lie on the estimated trajectory near the true cycle."""
        ds = results["dataset_1"]
        np.testing.assert_array_equal(ds.X, ds.X_full[ds.indices])
        assert np.all(np.abs(ds.X[:, 0] - 2.0) < 3.0)
        assert np.all(np.abs(ds.X[:, 1]) < 4.0)
        assert np.all(np.abs(ds.X[:, 2]) < 0.5)

    def test_noise_applied(self, results):
        ds = results["dataset_1"]
        residual = ds.Y_noisy - ds.Y
        assert np.any(residual != 0.0)
        assert np.max(np.abs(residual)) < 1e-2

    def test_seed_reproducible(self, config, results):
        again = generate_datasets(config)
        np.testing.assert_array_equal(again["dataset_1"].Y_noisy, results["dataset_1"].Y_noisy)
        np.testing.assert_array_equal(again["dataset_2"].Y_noisy, results["dataset_2"].Y_noisy)

    def test_trajectories_get_independent_noise(self, results):
        n1 = results["dataset_1"].Y_noisy - results["dataset_1"].Y
        n2 = results["dataset_2"].Y_noisy - results["dataset_2"].Y
        assert not np.allclose(n1, n2)

    def test_store_roundtrip(self, results, tmp_path):
        save_gp_data(results, tmp_path)
        gp_full = load_gp_dataset(tmp_path / "GP_full.npz")
        np.testing.assert_array_equal(gp_full["X_pooled"], results["dataset_pooled"].X)


class TestPipelineFailures:
    """Failures carry the trajectory that produced them."""

    def test_sampling_checked_before_simulation(self, config):
        traj = dataclasses.replace(config.trajectories[0], sample_count=5000)
        bad = dataclasses.replace(config, trajectories=(traj, config.trajectories[1]))
        with pytest.raises(SamplingOutOfRange) as excinfo:
            generate_datasets(bad)
        assert excinfo.value.context["trajectory"] == "vanderpol_1"

    def test_divergence_names_trajectory(self, config):
        osc = dataclasses.replace(config.trajectories[1].oscillator, eta=-50.0)
        traj = dataclasses.replace(config.trajectories[1], oscillator=osc)
        bad = dataclasses.replace(
            config, trajectories=(config.trajectories[0], traj), p_wo_init=np.array([12.0, 0.0, 0.0])
        )
        with pytest.raises(IntegrationDivergence) as excinfo:
            run_trajectory(traj, bad, rng=np.random.default_rng(0))
        assert excinfo.value.context["trajectory"] == "vanderpol_2"
        assert excinfo.value.context["eta"] == -50.0

    def test_target_behind_camera(self, config):
        bad = dataclasses.replace(config, p_wo_init=np.array([0.0, -7.0, 0.0]))
        with pytest.raises(DegenerateProjection) as excinfo:
            run_trajectory(bad.trajectories[0], bad, rng=np.random.default_rng(0))
        assert excinfo.value.context["trajectory"] == "vanderpol_1"
        assert excinfo.value.context["step"] == 0
