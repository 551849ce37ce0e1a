import numpy as np
import pytest

from lmesim import frontend, glm, simulation, population


@pytest.fixture()
def execdir(tmpdir):

    origdir = tmpdir.chdir()
    yield tmpdir
    origdir.chdir()


@pytest.fixture()
def sim_info():

    # Smaller than the reference scenario so that model fits stay quick
    info = frontend.info(n_subjects=6, n_repeats=2)
    return info


@pytest.fixture()
def design(sim_info):

    events = glm.block_design(sim_info.condition_names,
                              sim_info.onset_offsets,
                              sim_info.block_length,
                              sim_info.cycle_length,
                              sim_info.n_repeats,
                              sim_info.tr)
    X = glm.build_design_matrix(events, glm.GammaHRF(),
                                sim_info.n_tp, sim_info.tr)
    return X


@pytest.fixture()
def long_data(sim_info, design):

    seed = sum(map(ord, "long_data"))
    rng = np.random.default_rng(seed)

    series, draws = simulation.simulate_population(
        design, sim_info.fixed_effects, sim_info.random_effect_sds,
        sim_info.noise_sd, sim_info.n_subjects, rng,
    )
    data = population.to_long_format(series, design)

    return dict(
        info=sim_info,
        design=design,
        series=series,
        draws=draws,
        data=data,
    )
