"""Linear mixed-effects model estimation, comparison, and contrast tests."""
import logging
from collections import namedtuple

import numpy as np
import pandas as pd
import patsy
from scipy import stats, optimize
from statsmodels.regression.mixed_linear_model import MixedLM, MixedLMParams

from .glm import contrast_matrix
from .population import recombination_terms

logger = logging.getLogger(__name__)


ContrastResult = namedtuple(
    "ContrastResult", ["name", "estimate", "std_err", "t", "df", "p"]
)


# =========================================================================== #
# Model estimation
# =========================================================================== #


class MixedFit(object):
    """Results of fitting a linear mixed-effects model to long-format data.

    This wraps a statsmodels ``MixedLMResults`` object and exposes the
    quantities used for inference in a uniform way, including when the model
    has an autoregressive residual correlation structure (which statsmodels
    does not estimate natively).

    """
    def __init__(self, result, exog, groups, formula, re_formula,
                 reml=False, rho=None):

        self.result = result
        self.exog = exog
        self.groups = np.asarray(groups)
        self.formula = formula
        self.re_formula = re_formula
        self.reml = reml
        self.rho = rho

        fe_params = result.fe_params
        names = exog.columns
        self.fe_params = pd.Series(np.asarray(fe_params), names, name="coef")

        k_fe = len(names)
        cov = np.asarray(result.cov_params())[:k_fe, :k_fe]
        self.cov_fe = pd.DataFrame(cov, names, names)
        self.bse_fe = pd.Series(np.sqrt(np.diag(cov)), names, name="std_err")

        self.cov_re = result.cov_re
        self.scale = result.scale

        self.nobs = len(self.groups)
        self.n_groups = len(pd.unique(self.groups))

        # Log-likelihood of the untransformed data: whitening each group with
        # the AR(1) filter scales its density by |det P| = sqrt(1 - rho ** 2)
        llf = result.llf
        if rho is not None:
            llf += self.n_groups * .5 * np.log(1 - rho ** 2)
        self.llf = llf

        # Fixed effects, random effects covariance, residual scale, and rho
        self.n_params = len(result.params) + 1 + (rho is not None)

    @property
    def correlation(self):
        return None if self.rho is None else "ar1"

    @property
    def aic(self):
        return -2 * self.llf + 2 * self.n_params

    @property
    def bic(self):
        n = self.nobs - len(self.fe_params) if self.reml else self.nobs
        return -2 * self.llf + self.n_params * np.log(n)

    def summary(self):
        """Return the statsmodels summary, noting the AR(1) estimate."""
        summary = self.result.summary()
        if self.rho is not None:
            summary.add_text(f"AR(1) residual correlation: {self.rho:.4f}")
        return summary

    def __repr__(self):

        kind = "REML" if self.reml else "ML"
        corr = "" if self.rho is None else f", ar1={self.rho:.3f}"
        return (f"<MixedFit {self.formula} | {self.re_formula} "
                f"({kind}, llf={self.llf:.2f}{corr})>")


def ar1_transform(values, groups, rho):
    """Apply the Prais-Winsten AR(1) whitening filter within each group.

    Parameters
    ----------
    values : n_obs or n_obs x n_col array
        Data with observations in rows; rows for each group must be
        contiguous and ordered in time.
    groups : n_obs array
        Group label for each row.
    rho : float
        Lag-one autocorrelation coefficient, in (-1, 1).

    Returns
    -------
    out : array
        Whitened data with the same shape as the input.

    """
    values = np.asarray(values, float)
    groups = np.asarray(groups)

    first = np.ones(len(groups), bool)
    first[1:] = groups[1:] != groups[:-1]
    rest, = np.nonzero(~first)

    out = values.copy()
    out[first] = np.sqrt(1 - rho ** 2) * values[first]
    out[rest] = values[rest] - rho * values[rest - 1]
    return out


def fit_mixed_model(data, formula, re_formula="1", groups="subject",
                    reml=False, correlation=None, time="volume",
                    method=("bfgs", "nm"), start_params=None,
                    rho_bounds=(-.99, .99)):
    """Fit a linear mixed-effects model to long-format data.

    Parameters
    ----------
    data : dataframe
        Long-format table with one row per observation.
    formula : string
        Patsy formula for the outcome and fixed effects, e.g.
        ``"y ~ EV1 + EV2 + EV3"``.
    re_formula : string
        Patsy formula (with or without ``~``) for the terms that vary by
        group, e.g. ``"1"`` for random intercepts or ``"EV1 + EV2"`` for
        random intercepts and slopes. The random effects have an unstructured
        covariance matrix.
    groups : string
        Name of the column identifying groups.
    reml : bool
        If True, use restricted maximum likelihood; otherwise use maximum
        likelihood, which is required to compare models that differ in their
        fixed effects.
    correlation : None or "ar1"
        Residual correlation structure within each group. With "ar1", the
        autoregressive coefficient is estimated by maximizing the profile
        likelihood over whitened models.
    time : string
        Name of the column giving observation order within group; used only
        to order rows for the AR(1) structure.
    method : string or list of strings
        Optimization method(s) passed to the statsmodels fit; each is tried in
        turn until one converges. Nelder-Mead follows BFGS because the
        gradient methods can stall on a degenerate random effects covariance.
    start_params : MixedLMParams
        Starting values for the optimizer, e.g. from `recombined_start`.
    rho_bounds : pair of floats
        Search interval for the AR(1) coefficient.

    Returns
    -------
    fit : MixedFit
        Object with estimates and fit statistics.

    """
    if correlation not in (None, "ar1"):
        raise ValueError(f"Unknown correlation structure: {correlation}")

    if correlation is not None:
        data = data.sort_values([groups, time], kind="mergesort")

    re_formula = re_formula.strip().lstrip("~").strip()

    endog, exog = patsy.dmatrices(formula, data, return_type="dataframe")
    endog_name = endog.columns[0]
    exog_re = patsy.dmatrix(re_formula, data, return_type="dataframe")
    group_labels = np.asarray(data.loc[endog.index, groups])

    fit_kws = dict(reml=reml, method=method)
    if start_params is not None:
        fit_kws["start_params"] = start_params

    def fit_model(model):

        result = model.fit(**fit_kws)
        if not np.isfinite(result.llf):
            raise RuntimeError(f"Log-likelihood of {formula} is not finite; "
                               "the model is degenerate for these data")
        return result

    logger.info("Fitting %s with random effects (%s) by %s%s",
                formula, re_formula, "REML" if reml else "ML",
                "" if correlation is None else " with AR(1) residuals")

    def fit_whitened(rho):

        y = ar1_transform(endog, group_labels, rho)
        X = ar1_transform(exog, group_labels, rho)
        Z = ar1_transform(exog_re, group_labels, rho)

        model = MixedLM(pd.Series(y[:, 0], endog.index, name=endog_name),
                        pd.DataFrame(X, exog.index, exog.columns),
                        groups=group_labels,
                        exog_re=pd.DataFrame(Z, exog_re.index,
                                             exog_re.columns))
        return fit_model(model)

    if correlation is None:

        model = MixedLM(endog[endog_name], exog, groups=group_labels,
                        exog_re=exog_re)
        result = fit_model(model)
        return MixedFit(result, exog, group_labels, formula, re_formula,
                        reml)

    n_groups = len(pd.unique(group_labels))

    def neg_profile_llf(rho):

        result = fit_whitened(rho)
        llf = result.llf + n_groups * .5 * np.log(1 - rho ** 2)
        logger.debug("AR(1) profile: rho=%.4f llf=%.4f", rho, llf)
        return -llf

    opt = optimize.minimize_scalar(neg_profile_llf, bounds=rho_bounds,
                                   method="bounded",
                                   options=dict(xatol=1e-4))
    rho = float(opt.x)
    logger.info("Estimated AR(1) residual correlation: %.4f", rho)

    result = fit_whitened(rho)
    return MixedFit(result, exog, group_labels, formula, re_formula,
                    reml, rho)


def recombined_start(fit, contrast):
    """Map the estimates of a fit onto its recombined parameterization.

    Replacing regressor ``a`` by ``a + b`` (see
    `lmesim.population.recombine_regressors`) is the linear change of basis
    ``X' = X M``. The equivalent coefficients are ``M^-1 b`` and the
    equivalent random effects covariance is ``M^-1 G M^-T``, where the same
    change applies to the random effects design when it includes both terms.

    Parameters
    ----------
    fit : MixedFit
        Model fit to the original regressors.
    contrast : tuple
        Pairwise difference contrast as (name, [a, b], [-1, 1]).

    Returns
    -------
    params : MixedLMParams
        Starting values for fitting the recombined model, at which it has the
        same likelihood as ``fit``.

    """
    base, target = recombination_terms(contrast)

    def inverse_basis(names):
        A = pd.DataFrame(np.eye(len(names)), names, names)
        if base in names and target in names:
            A.loc[target, base] = -1
        return A.to_numpy()

    A_fe = inverse_basis(fit.fe_params.index)
    A_re = inverse_basis(fit.cov_re.index)

    fe_params = A_fe.dot(fit.fe_params.to_numpy())
    cov_re = A_re.dot(np.asarray(fit.result.cov_re_unscaled)).dot(A_re.T)

    return MixedLMParams.from_components(fe_params, cov_re=cov_re)


# =========================================================================== #
# Model comparison
# =========================================================================== #


def compare_models(*fits, names=None):
    """Compare fitted models with likelihood ratio tests.

    Each model after the first is tested against the model before it, with
    degrees of freedom equal to the difference in the number of parameters.

    Parameters
    ----------
    fits : MixedFit objects
        Models fit to the same data, ordered by complexity.
    names : list of strings
        Labels for the models; defaults to ``model1``, ``model2``, ...

    Returns
    -------
    table : dataframe
        One row per model with the number of parameters, information criteria,
        log-likelihood, and the likelihood ratio test against the previous
        model (missing for the first row).

    """
    if len(fits) < 2:
        raise ValueError("Need at least two models to compare")
    if names is None:
        names = [f"model{i}" for i in range(1, len(fits) + 1)]
    if len(names) != len(fits):
        raise ValueError("Number of names does not match number of models")

    nobs = {fit.nobs for fit in fits}
    if len(nobs) > 1:
        raise ValueError("Models were not fit to the same observations")

    if any(fit.reml for fit in fits):
        fixed = {tuple(fit.fe_params.index) for fit in fits}
        if len(fixed) > 1:
            logger.warning("Fitted objects with different fixed effects; "
                           "REML comparisons are not meaningful.")

    rows = []
    for i, fit in enumerate(fits):
        row = {"df": fit.n_params, "AIC": fit.aic, "BIC": fit.bic,
               "logLik": fit.llf, "Test": None,
               "L.Ratio": np.nan, "p-value": np.nan}
        if i:
            prev = fits[i - 1]
            ddf = abs(fit.n_params - prev.n_params)
            lr = 2 * abs(fit.llf - prev.llf)
            row["Test"] = f"{i} vs {i + 1}"
            row["L.Ratio"] = lr
            row["p-value"] = stats.chi2(ddf).sf(lr) if ddf else np.nan
        rows.append(row)

    table = pd.DataFrame(rows, index=pd.Index(names, name="model"))
    return table


# =========================================================================== #
# Contrast inference
# =========================================================================== #


def denominator_df(fit, method="within"):
    """Determine denominator degrees of freedom for each fixed effect.

    Parameters
    ----------
    fit : MixedFit
        Fitted model.
    method : "within" or "residual"
        With "within", terms that are constant within every group are tested
        against the between-group degrees of freedom (groups minus 1 minus the
        number of such terms) and all other terms, including the intercept,
        against the within-group degrees of freedom (observations minus groups
        minus the number of such terms). With "residual", every term uses the
        observations minus the number of fixed effects.

    Returns
    -------
    df : series
        Degrees of freedom indexed by fixed effect name.

    """
    names = fit.fe_params.index
    n, g = fit.nobs, fit.n_groups

    if method == "residual":
        return pd.Series(float(n - len(names)), names, name="df")
    elif method != "within":
        raise ValueError(f"Unknown degrees of freedom method: {method}")

    exog = fit.exog.copy()
    exog["_group"] = fit.groups
    spread = exog.groupby("_group", sort=False).nunique().max()

    between = [c for c in names if c != "Intercept" and spread[c] == 1]
    within = [c for c in names if c != "Intercept" and c not in between]

    df = pd.Series(float(n - g - len(within)), names, name="df")
    df[between] = float(g - 1 - len(between))
    return df


def contrast_test(fit, contrast, alternative="two-sided", ddf="within"):
    """Test a linear combination of fixed-effect estimates.

    The statistic is ``t = c'b / sqrt(c' V c)``, where ``b`` are the fixed
    effect estimates and ``V`` their covariance matrix.

    Parameters
    ----------
    fit : MixedFit
        Fitted model.
    contrast : tuple or array
        Either a tuple with (1) the name of the contrast, (2) the involved
        fixed effects, and (3) the weight for each; or a vector of weights
        with one entry per fixed effect.
    alternative : "two-sided", "greater", or "less"
        Alternative hypothesis for the p value.
    ddf : string
        Method for the denominator degrees of freedom; see `denominator_df`.

    Returns
    -------
    res : ContrastResult
        Named tuple with the contrast name, estimate, standard error, t
        statistic, degrees of freedom, and p value.

    """
    names = fit.fe_params.index.tolist()
    if isinstance(contrast, tuple):
        name = contrast[0]
        c = contrast_matrix(contrast, names)
    else:
        c = np.asarray(contrast, float)
        name = " + ".join(f"{w:g}*{n}" for w, n in zip(c, names) if w)
    if c.shape != (len(names),):
        err = f"Contrast must have one weight for each of {len(names)} effects"
        raise ValueError(err)

    beta = fit.fe_params.to_numpy()
    cov = fit.cov_fe.to_numpy()

    estimate = c.dot(beta)
    std_err = np.sqrt(c.dot(cov).dot(c))
    t = estimate / std_err

    df = denominator_df(fit, ddf)[c != 0].min()

    dist = stats.t(df)
    if alternative == "two-sided":
        p = 2 * dist.sf(np.abs(t))
    elif alternative == "greater":
        p = dist.sf(t)
    elif alternative == "less":
        p = dist.cdf(t)
    else:
        raise ValueError(f"Unknown alternative: {alternative}")

    return ContrastResult(name, estimate, std_err, t, df, p)
