"""Tools for assembling simulated subject data into a long-format table."""
import numpy as np
import pandas as pd


def subject_ids(n_subjects, prefix="subj"):
    """Return zero-padded subject identifiers numbered from 1."""
    pad = max(2, len(str(n_subjects)))
    return [f"{prefix}{i:0{pad}d}" for i in range(1, n_subjects + 1)]


def to_long_format(series, design, subjects=None):
    """Stack subject time series and design information into one table.

    Parameters
    ----------
    series : dataframe or list of arrays
        Time series with volumes in rows and subjects in columns, or a list
        with one time series per subject.
    design : dataframe
        Regressors with volumes in rows; replicated once for each subject.
    subjects : list of strings
        Subject identifiers in the order the series should be stacked.
        Defaults to the columns of ``series`` when it is a dataframe, and to
        ``subject_ids(n)`` otherwise.

    Returns
    -------
    data : dataframe
        Long-format table with one row per (subject, volume) pair. Rows are
        grouped contiguously by subject, in subject order, with volumes in
        their original order. The ``subject`` column is categorical.

    """
    if isinstance(series, pd.DataFrame):
        if subjects is None:
            subjects = series.columns.tolist()
        series = [series[subj].to_numpy() for subj in subjects]
    else:
        series = [np.asarray(s, float) for s in series]
        if subjects is None:
            subjects = subject_ids(len(series))

    if len(series) != len(subjects):
        err = "Number of time series does not match number of subjects"
        raise ValueError(err)

    n_tp = len(design)
    for y in series:
        if len(y) != n_tp:
            err = "Size of time series does not correspond with design"
            raise ValueError(err)

    n_subj = len(subjects)
    data = pd.DataFrame({
        "subject": pd.Categorical(np.repeat(subjects, n_tp),
                                  categories=subjects),
        "volume": np.tile(np.arange(1, n_tp + 1), n_subj),
        "y": np.concatenate(series) if series else np.array([]),
    })

    regressors = np.tile(np.asarray(design, float), (n_subj, 1))
    for i, name in enumerate(design.columns):
        data[str(name)] = regressors[:, i]

    return data


def recombination_terms(contrast):
    """Return the (base, target) regressors of a pairwise difference contrast."""
    _, names, weights = contrast
    weights = list(weights)
    if len(names) != 2 or sorted(weights) != [-1, 1]:
        err = "Only pairwise difference contrasts can be recombined"
        raise ValueError(err)

    base, target = names if weights[1] > 0 else names[::-1]
    return base, target


def recombine_regressors(data, contrast):
    """Reparameterize a design so that a pairwise difference is one term.

    For a model ``y ~ a + b`` with coefficients ``B_a`` and ``B_b``, replacing
    ``a`` by ``a + b`` gives the equivalent model whose coefficient on ``b``
    is ``B_b - B_a``. Fitting it tests the difference directly.

    Parameters
    ----------
    data : dataframe
        Long-format table with regressor columns.
    contrast : tuple
        Contrast as (name, [a, b], [-1, 1]), testing ``b - a``.

    Returns
    -------
    data : dataframe
        Copy of the table with column ``a`` replaced by ``a + b``.

    """
    base, target = recombination_terms(contrast)

    data = data.copy()
    data[base] = data[base] + data[target]
    return data
