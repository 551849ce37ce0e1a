"""Generate synthetic voxel time series from known population parameters."""
import logging
from collections import namedtuple

import numpy as np
import pandas as pd

from .population import subject_ids

logger = logging.getLogger(__name__)


PopulationDraws = namedtuple("PopulationDraws", ["random_effects", "noise"])


def make_rng(seed=None):
    """Return a random number generator, seeding it if an int is passed."""
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


def coefficient_names(design):
    """Names of the model coefficients: an intercept and one per regressor."""
    return ["Intercept"] + [str(c) for c in design.columns]


def draw_random_effects(rng, n_subjects, sds, names=None, subjects=None):
    """Draw subject-specific deviations from the population coefficients.

    Parameters
    ----------
    rng : numpy Generator
        Source of random numbers; it is advanced by this function.
    n_subjects : int
        Number of subjects to draw effects for.
    sds : list of floats
        Standard deviation of the zero-mean normal distribution for each
        coefficient (intercept first, then each regressor).
    names : list of strings
        Coefficient names; defaults to `b0`, `b1`, ...
    subjects : list of strings
        Subject identifiers; defaults to `subject_ids(n_subjects)`.

    Returns
    -------
    effects : dataframe
        Random effects with subjects in rows and coefficients in columns.
        Draws are made subject by subject, in coefficient order.

    """
    sds = np.asarray(sds, float)
    if names is None:
        names = [f"b{i}" for i in range(len(sds))]
    if subjects is None:
        subjects = subject_ids(n_subjects)
    if len(names) != len(sds):
        raise ValueError("Number of names does not match number of sds")
    if len(subjects) != n_subjects:
        raise ValueError("Number of subject ids does not match `n_subjects`")

    draws = rng.normal(0, 1, (n_subjects, len(sds))) * sds

    index = pd.Index(subjects, name="subject")
    return pd.DataFrame(draws, index=index, columns=names)


def draw_population(rng, n_subjects, n_tp, random_sds, noise_sd,
                    names=None, subjects=None):
    """Make every random draw needed to simulate a population.

    This function defines the order in which the generator is consumed: first
    all random effects (subject by subject), then the noise time series for
    each subject in subject order. Two calls with generators in the same state
    return identical draws.

    Parameters
    ----------
    rng : numpy Generator
        Source of random numbers.
    n_subjects : int
        Number of subjects in the population.
    n_tp : int
        Number of volumes in each subject's time series.
    random_sds : list of floats
        Standard deviation of the random effect for each coefficient.
    noise_sd : float
        Standard deviation of the independent noise at each time point.
    names : list of strings
        Coefficient names for the random effects table.
    subjects : list of strings
        Subject identifiers.

    Returns
    -------
    draws : PopulationDraws
        Tuple with `random_effects` (subjects x coefficients dataframe) and
        `noise` (volumes x subjects dataframe).

    """
    if subjects is None:
        subjects = subject_ids(n_subjects)

    random_effects = draw_random_effects(rng, n_subjects, random_sds,
                                         names, subjects)

    noise = np.column_stack([
        rng.normal(0, 1, n_tp) * noise_sd for _ in range(n_subjects)
    ])
    index = pd.RangeIndex(n_tp, name="volume")
    columns = pd.Index(subjects, name="subject")
    noise = pd.DataFrame(noise, index=index, columns=columns)

    return PopulationDraws(random_effects, noise)


def simulate_subject(design, fixed_effects, random_effects=None,
                     noise=None, noise_sd=None, rng=None):
    """Simulate one voxel time series given regressors and coefficients.

    The series is ``b0 + sum_k X_k * b_k + e``, where each coefficient is the
    sum of its fixed and (optional) random component.

    Parameters
    ----------
    design : dataframe
        Regressors with volumes in rows.
    fixed_effects : list of floats
        Population coefficients: the intercept followed by one value for each
        regressor.
    random_effects : list of floats or series
        Subject-specific deviations from the fixed effects, in the same order.
        If None, the subject has the population coefficients.
    noise : array
        Noise values to add at each volume. If None, noise is drawn from
        ``rng`` with standard deviation ``noise_sd``.
    noise_sd : float
        Noise standard deviation when drawing noise.
    rng : numpy Generator
        Source of random numbers when drawing noise.

    Returns
    -------
    y : series
        Simulated time series indexed like the design.

    """
    X = np.asarray(design, float)
    n_tp, n_ev = X.shape

    b = np.asarray(fixed_effects, float)
    if b.size != n_ev + 1:
        err = (f"Need {n_ev + 1} coefficients (intercept and one per "
               f"regressor), got {b.size}")
        raise ValueError(err)
    if random_effects is not None:
        u = np.asarray(random_effects, float)
        if u.shape != b.shape:
            raise ValueError("Random effects do not align with fixed effects")
        b = b + u

    if noise is None:
        if noise_sd is None or rng is None:
            raise ValueError("Need `noise` or both `noise_sd` and `rng`")
        noise = rng.normal(0, 1, n_tp) * noise_sd
    noise = np.asarray(noise, float)
    if noise.shape != (n_tp,):
        raise ValueError("Size of noise does not correspond with design")

    y = b[0] + X.dot(b[1:]) + noise

    return pd.Series(y, index=design.index, name="y")


def simulate_population(design, fixed_effects, random_sds, noise_sd,
                        n_subjects, rng, homogeneous=False, subjects=None):
    """Simulate time series for a population of subjects.

    Parameters
    ----------
    design : dataframe
        Regressors with volumes in rows; shared by all subjects.
    fixed_effects : list of floats
        Population coefficients (intercept first).
    random_sds : list of floats
        Standard deviation of the random effect for each coefficient.
    noise_sd : float
        Standard deviation of the independent noise at each time point.
    n_subjects : int
        Number of subjects to simulate.
    rng : numpy Generator
        Source of random numbers.
    homogeneous : bool
        If True, every subject shares the population coefficients. The
        generator is consumed identically either way, so the noise matches
        what a heterogeneous simulation with the same generator would use.
    subjects : list of strings
        Subject identifiers.

    Returns
    -------
    series : dataframe
        Simulated time series with volumes in rows and subjects in columns.
    draws : PopulationDraws
        The random draws used in the simulation; random effects are zero in
        homogeneous mode.

    """
    n_tp = len(design)
    names = coefficient_names(design)

    draws = draw_population(rng, n_subjects, n_tp, random_sds, noise_sd,
                            names, subjects)
    if homogeneous:
        zeros = pd.DataFrame(0., draws.random_effects.index,
                             draws.random_effects.columns)
        draws = draws._replace(random_effects=zeros)

    logger.debug("Simulating %d subjects with %d volumes (%s)",
                 n_subjects, n_tp,
                 "homogeneous" if homogeneous else "heterogeneous")

    series = {}
    for subj, effects in draws.random_effects.iterrows():
        series[subj] = simulate_subject(design, fixed_effects, effects,
                                        noise=draws.noise[subj])

    series = pd.DataFrame(series)
    series.columns.name = "subject"

    return series, draws
