"""Run the simulation and model recovery steps from simulation information."""
import logging

import pandas as pd

from . import glm, mixed, population, simulation

logger = logging.getLogger(__name__)


def simulate(info, rng=None):
    """Build the design and simulate data for a population of subjects.

    Parameters
    ----------
    info : SimulationInfo
        Simulation parameters.
    rng : numpy Generator
        Source of random numbers; if None, one is seeded from
        ``info.random_seed``.

    Returns
    -------
    res : dict
        Dictionary with the block design ``events``, boxcar ``stimuli``,
        convolved ``design`` matrix, random ``draws``, per-subject ``series``,
        and the long-format ``data`` table.

    """
    if rng is None:
        rng = simulation.make_rng(info.random_seed)

    n_tp = info.n_tp
    events = glm.block_design(info.condition_names, info.onset_offsets,
                              info.block_length, info.cycle_length,
                              info.n_repeats, info.tr)
    stimuli = glm.stimulus_matrix(events, n_tp, info.tr)
    design = glm.build_design_matrix(events, glm.GammaHRF(), n_tp, info.tr)

    logger.info("Simulating %d subjects with %d volumes and %d regressors",
                info.n_subjects, n_tp, design.shape[1])

    series, draws = simulation.simulate_population(
        design, info.fixed_effects, info.random_effect_sds, info.noise_sd,
        info.n_subjects, rng, homogeneous=info.homogeneous,
    )
    data = population.to_long_format(series, design)

    return dict(events=events, stimuli=stimuli, design=design,
                draws=draws, series=series, data=data)


def model_formulas(names):
    """Return fixed and random effects formulas for a list of regressors."""
    terms = " + ".join(names)
    return f"y ~ {terms}", terms


def analyze(data, info):
    """Fit a sequence of mixed models, compare them, and test contrasts.

    Three models share the fixed effects of every regressor: one with random
    intercepts, one with random intercepts and slopes, and, if a residual
    correlation structure is requested, the random slopes model with that
    structure added.

    Parameters
    ----------
    data : dataframe
        Long-format table from `lmesim.population.to_long_format`.
    info : SimulationInfo
        Analysis parameters.

    Returns
    -------
    res : dict
        Dictionary with the ``fits`` (dict of MixedFit objects), the
        ``comparison`` table, and the ``contrasts`` table.

    """
    formula, re_terms = model_formulas(info.condition_names)

    fits = {}
    fits["intercepts"] = mixed.fit_mixed_model(data, formula, "1",
                                               reml=info.reml)
    fits["slopes"] = mixed.fit_mixed_model(data, formula, re_terms,
                                           reml=info.reml)
    if info.correlation is not None:
        fits[info.correlation] = mixed.fit_mixed_model(
            data, formula, re_terms, reml=info.reml,
            correlation=info.correlation,
        )

    comparison = mixed.compare_models(*fits.values(), names=list(fits))

    full = fits["slopes"]
    rows = []
    for contrast in info.contrasts:
        res = mixed.contrast_test(full, contrast, ddf=info.ddf_method)
        rows.append(dict(res._asdict(), model="slopes"))

        # Test pairwise differences again through a reparameterized model
        names, weights = contrast[1:]
        if len(names) == 2 and sorted(weights) == [-1, 1]:
            _, target = population.recombination_terms(contrast)
            recombined = population.recombine_regressors(data, contrast)
            refit = mixed.fit_mixed_model(
                recombined, formula, re_terms, reml=info.reml,
                start_params=mixed.recombined_start(full, contrast),
            )
            res = mixed.contrast_test(refit, (contrast[0], [target], [1]),
                                      ddf=info.ddf_method)
            rows.append(dict(res._asdict(), model="recombined"))

    contrasts = pd.DataFrame(rows)

    return dict(fits=fits, comparison=comparison, contrasts=contrasts)


def run(info, rng=None):
    """Simulate data and analyze it, returning all intermediate results."""
    res = simulate(info, rng)
    res.update(analyze(res["data"], info))
    return res


def summarize(res, info):
    """Return a plain text report comparing estimates to the true values."""
    full = res["fits"]["slopes"]
    truth = pd.Series(list(info.fixed_effects), full.fe_params.index)
    fixed = pd.DataFrame(dict(true=truth,
                              estimate=full.fe_params,
                              std_err=full.bse_fe))

    true_sd = pd.Series(list(info.random_effect_sds), full.cov_re.index)
    est_sd = pd.Series([full.cov_re.iloc[i, i] ** .5
                        for i in range(len(full.cov_re))], full.cov_re.index)
    random = pd.DataFrame(dict(true_sd=true_sd, estimate_sd=est_sd))

    lines = [
        "Fixed effects",
        fixed.to_string(float_format="{:.4f}".format),
        "",
        "Random effects",
        random.to_string(float_format="{:.4f}".format),
        "",
        f"Residual sd: {full.scale ** .5:.4f} (true {info.noise_sd:.4f})",
        "",
        "Model comparison",
        res["comparison"].to_string(float_format="{:.4f}".format),
        "",
        "Contrasts",
        res["contrasts"].to_string(float_format="{:.4f}".format),
    ]
    return "\n".join(lines)
