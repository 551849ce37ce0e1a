import numpy as np
import pandas as pd

import pytest
from pytest import approx

from .. import simulation


class TestRandomDraws(object):

    @pytest.fixture
    def seed(self):

        return sum(map(ord, "random_draws"))

    def test_make_rng(self, seed):

        a = simulation.make_rng(seed).normal(size=5)
        b = simulation.make_rng(seed).normal(size=5)
        assert np.array_equal(a, b)

        rng = np.random.default_rng(seed)
        assert simulation.make_rng(rng) is rng

    def test_random_effects_shape(self, seed):

        rng = np.random.default_rng(seed)
        sds = [1.5, 1, .5, .8]
        effects = simulation.draw_random_effects(rng, 10, sds)

        assert effects.shape == (10, 4)
        assert effects.index.tolist()[:2] == ["subj01", "subj02"]
        assert effects.columns.tolist() == ["b0", "b1", "b2", "b3"]

    def test_random_effects_zero_sd(self, seed):

        rng = np.random.default_rng(seed)
        effects = simulation.draw_random_effects(rng, 5, [0, 2])

        assert (effects["b0"] == 0).all()
        assert (effects["b1"] != 0).all()

    def test_random_effects_scale(self, seed):

        rng = np.random.default_rng(seed)
        sds = [3, .1]
        effects = simulation.draw_random_effects(rng, 5000, sds)

        assert effects.std().values == approx(sds, rel=.05)
        assert effects.mean().values == approx([0, 0], abs=.1)

    def test_random_effects_errors(self, seed):

        rng = np.random.default_rng(seed)
        with pytest.raises(ValueError):
            simulation.draw_random_effects(rng, 3, [1, 1], names=["a"])
        with pytest.raises(ValueError):
            simulation.draw_random_effects(rng, 3, [1], subjects=["s1"])

    def test_population_draw_order(self, seed):

        n_subj, n_tp = 4, 20
        sds = [1, 2, 3]
        noise_sd = .5

        draws = simulation.draw_population(
            np.random.default_rng(seed), n_subj, n_tp, sds, noise_sd
        )

        rng = np.random.default_rng(seed)
        effects = rng.normal(0, 1, (n_subj, 3)) * sds
        noise = [rng.normal(0, 1, n_tp) * noise_sd for _ in range(n_subj)]

        assert np.array_equal(draws.random_effects.values, effects)
        assert np.array_equal(draws.noise.values, np.column_stack(noise))

    def test_population_draws_reproducible(self, seed):

        args = 6, 30, [1, 1], .2
        a = simulation.draw_population(np.random.default_rng(seed), *args)
        b = simulation.draw_population(np.random.default_rng(seed), *args)

        assert a.random_effects.equals(b.random_effects)
        assert a.noise.equals(b.noise)

    def test_population_draws_layout(self, seed):

        subjects = ["a", "b", "c"]
        draws = simulation.draw_population(
            np.random.default_rng(seed), 3, 12, [1, 1], 1,
            names=["Intercept", "x"], subjects=subjects,
        )

        assert draws.random_effects.index.tolist() == subjects
        assert draws.random_effects.columns.tolist() == ["Intercept", "x"]
        assert draws.noise.shape == (12, 3)
        assert draws.noise.columns.tolist() == subjects


class TestSubjectSimulation(object):

    @pytest.fixture
    def random(self):

        seed = sum(map(ord, "subject_simulation"))
        return np.random.default_rng(seed)

    @pytest.fixture
    def regressors(self, random):

        X = random.uniform(0, 1, (40, 3))
        index = pd.RangeIndex(40, name="volume")
        return pd.DataFrame(X, index, ["EV1", "EV2", "EV3"])

    def test_coefficient_names(self, regressors):

        names = simulation.coefficient_names(regressors)
        assert names == ["Intercept", "EV1", "EV2", "EV3"]

    def test_simulate_subject_formula(self, random, regressors):

        fixed = [3, 2, 5, 4]
        noise = random.normal(0, .5, len(regressors))

        y = simulation.simulate_subject(regressors, fixed, noise=noise)

        X = regressors.values
        expected = 3 + 2 * X[:, 0] + 5 * X[:, 1] + 4 * X[:, 2] + noise
        assert y.values == approx(expected)
        assert y.index.equals(regressors.index)

    def test_simulate_subject_random_effects(self, random, regressors):

        fixed = [3, 2, 5, 4]
        effects = [1, -1, .5, 0]
        noise = np.zeros(len(regressors))

        y = simulation.simulate_subject(regressors, fixed, effects, noise)
        y_shift = simulation.simulate_subject(regressors, [4, 1, 5.5, 4],
                                              noise=noise)
        assert y.values == approx(y_shift.values)

    def test_simulate_subject_draws_noise(self, regressors):

        fixed = [0, 0, 0, 0]
        seed = sum(map(ord, "noise"))

        y = simulation.simulate_subject(regressors, fixed, noise_sd=2,
                                        rng=np.random.default_rng(seed))
        noise = np.random.default_rng(seed).normal(0, 1, 40) * 2
        assert np.array_equal(y.values, noise)

    def test_simulate_subject_errors(self, regressors):

        with pytest.raises(ValueError):
            simulation.simulate_subject(regressors, [1, 2, 3],
                                        noise=np.zeros(40))

        with pytest.raises(ValueError):
            simulation.simulate_subject(regressors, [1, 2, 3, 4], [1, 2],
                                        noise=np.zeros(40))

        with pytest.raises(ValueError):
            simulation.simulate_subject(regressors, [1, 2, 3, 4],
                                        noise=np.zeros(39))

        with pytest.raises(ValueError):
            simulation.simulate_subject(regressors, [1, 2, 3, 4], noise_sd=1)


class TestPopulationSimulation(object):

    @pytest.fixture
    def seed(self):

        return sum(map(ord, "population_simulation"))

    def test_population_shape(self, design, seed, sim_info):

        rng = np.random.default_rng(seed)
        series, draws = simulation.simulate_population(
            design, sim_info.fixed_effects, sim_info.random_effect_sds,
            sim_info.noise_sd, sim_info.n_subjects, rng,
        )

        assert series.shape == (sim_info.n_tp, sim_info.n_subjects)
        assert series.columns.tolist() == draws.noise.columns.tolist()
        assert draws.random_effects.columns.tolist() == [
            "Intercept", "EV1", "EV2", "EV3"
        ]

    def test_population_formula(self, design, seed, sim_info):

        fixed = np.asarray(sim_info.fixed_effects)
        rng = np.random.default_rng(seed)
        series, draws = simulation.simulate_population(
            design, fixed, sim_info.random_effect_sds,
            sim_info.noise_sd, sim_info.n_subjects, rng,
        )

        X = design.values
        for subj in series:
            b = fixed + draws.random_effects.loc[subj].values
            expected = b[0] + X.dot(b[1:]) + draws.noise[subj].values
            assert series[subj].values == approx(expected)

    def test_homogeneous_reduces_to_single_subject(self, design, seed,
                                                   sim_info):

        fixed = sim_info.fixed_effects
        rng = np.random.default_rng(seed)
        series, draws = simulation.simulate_population(
            design, fixed, sim_info.random_effect_sds,
            sim_info.noise_sd, sim_info.n_subjects, rng, homogeneous=True,
        )

        assert (draws.random_effects.values == 0).all()

        for subj in series:
            y = simulation.simulate_subject(design, fixed,
                                            noise=draws.noise[subj])
            assert np.array_equal(series[subj].values, y.values)

    def test_homogeneous_shares_noise(self, design, seed, sim_info):

        args = (design, sim_info.fixed_effects, sim_info.random_effect_sds,
                sim_info.noise_sd, sim_info.n_subjects)

        _, hom = simulation.simulate_population(
            *args, np.random.default_rng(seed), homogeneous=True
        )
        _, het = simulation.simulate_population(
            *args, np.random.default_rng(seed)
        )
        assert hom.noise.equals(het.noise)

    def test_zero_variance_population(self, design, seed, sim_info):

        rng = np.random.default_rng(seed)
        series, _ = simulation.simulate_population(
            design, sim_info.fixed_effects, [0, 0, 0, 0], 0,
            sim_info.n_subjects, rng,
        )

        first = series.iloc[:, 0]
        for subj in series:
            assert np.array_equal(series[subj].values, first.values)

    def test_population_reproducible(self, design, seed, sim_info):

        args = (design, sim_info.fixed_effects, sim_info.random_effect_sds,
                sim_info.noise_sd, sim_info.n_subjects)

        a, _ = simulation.simulate_population(
            *args, np.random.default_rng(seed)
        )
        b, _ = simulation.simulate_population(
            *args, np.random.default_rng(seed)
        )
        assert a.equals(b)
