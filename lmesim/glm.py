import numpy as np
import pandas as pd
from scipy import stats
from scipy.interpolate import interp1d


# =========================================================================== #
# Block design specification
# =========================================================================== #


def block_design(names, onset_offsets, block_length, cycle_length,
                 n_repeats, tr=1):
    """Define event information for a repeating block design.

    Each experimental cycle contains one block for each condition, starting
    at the corresponding offset within the cycle. Volumes in the cycle that
    are not covered by any block make up the implicit baseline, which is not
    represented in the output.

    Parameters
    ----------
    names : list of strings
        Condition names.
    onset_offsets : list of ints
        Offset (in volumes) of each condition's block within a cycle.
    block_length : int
        Duration (in volumes) of each block.
    cycle_length : int
        Number of volumes in one cycle of the experiment.
    n_repeats : int
        Number of times the cycle is repeated.
    tr : float
        Time resolution of the acquisition, in seconds.

    Returns
    -------
    events : dataframe
        Event information with condition, onset (in seconds), duration (in
        seconds), and value columns; one row per block occurrence.

    """
    if len(names) != len(onset_offsets):
        err = "Number of conditions does not match number of onset offsets"
        raise ValueError(err)

    rows = []
    for name, offset in zip(names, onset_offsets):
        for rep in range(n_repeats):
            onset = (rep * cycle_length + offset) * tr
            rows.append((name, onset, block_length * tr, 1.))

    events = pd.DataFrame(rows,
                          columns=["condition", "onset", "duration", "value"])
    return events


def stimulus_vector(onsets, durations, n_tp):
    """Build a boxcar vector indicating stimulus presentation.

    Parameters
    ----------
    onsets : list of ints
        Volume index where each presentation starts.
    durations : list of ints
        Number of volumes that each presentation lasts.
    n_tp : int
        Number of volumes in the output.

    Returns
    -------
    stim : n_tp array
        Vector with 1 where the stimulus is present and 0 elsewhere.

    """
    stim = np.zeros(n_tp, int)
    for onset, duration in zip(onsets, durations):
        stim[int(onset):int(onset + duration)] = 1
    return stim


def stimulus_matrix(events, n_tp, tr=1):
    """Build boxcar vectors for each condition in an events table.

    Parameters
    ----------
    events : dataframe
        Event information with condition, onset, and duration columns, with
        times in seconds.
    n_tp : int
        Number of volumes in the output.
    tr : float
        Time resolution of the acquisition, in seconds.

    Returns
    -------
    stimuli : dataframe
        Boxcar vectors with volumes in rows and conditions in columns.

    """
    columns = {}
    for name, info in events.groupby("condition", sort=False):
        onsets = np.round(info["onset"] / tr).astype(int)
        durations = np.round(info["duration"] / tr).astype(int)
        columns[name] = stimulus_vector(onsets, durations, n_tp)

    stimuli = pd.DataFrame(columns, index=pd.RangeIndex(n_tp, name="volume"))
    return stimuli


# =========================================================================== #
# Design matrix construction
# =========================================================================== #


class HRFModel(object):
    """Abstract base class for HRF models used in design construction."""
    def transform(self, input):
        """Generate the predicted response to the input."""
        raise NotImplementedError


class IdentityHRF(HRFModel):
    """Model that does not alter input during transform; useful for testing."""
    def transform(self, x):
        """Return input without altering."""
        y = x
        return y


class GammaHRF(HRFModel):
    """Double gamma variate model of canonical HRF."""
    def __init__(self, res=60, duration=32, pos_shape=6, pos_scale=1,
                 neg_shape=16, neg_scale=1, ratio=1/6):
        """Initialize the object with parameters that define response shape.

        Parameters
        ----------
        res : float
            Sampling frequency at which to generate the convolution kernel.
        duration : float
            Duration of the convolution kernel.
        pos_{shape, scale} : floats
            Parameters for scipy.stats.gamma defining the initial positive
            component of the response.
        neg_{shape, scale} : floats
            Parameters for scipy.stats.gamma defining the later negative
            component of the response.
        ratio : float
            Ratio between the amplitude of the positive component to the
            amplitude of the negative component.

        """
        pos = stats.gamma(pos_shape, scale=pos_scale).pdf
        neg = stats.gamma(neg_shape, scale=neg_scale).pdf
        tps = np.arange(0, duration, 1 / res, float)

        k = pos(tps) - ratio * neg(tps)
        k /= k.sum()
        self.kernel = k

    def transform(self, x):
        """Generate a predicted response for the input through convolution.

        Parameters
        ----------
        x : array or series
            Input data; should be one-dimensional

        Returns
        -------
        output : array or series
            Output data; has same type of input.

        """
        n_tp = len(x)

        y = np.convolve(x, self.kernel)[:n_tp]

        if isinstance(x, pd.Series):
            y = pd.Series(y, x.index, name=str(x.name))

        return y


def condition_to_regressor(name, condition, hrf_model,
                           n_tp, tr, res, shift):
    """Generate a design matrix column from information about event occurrence.

    Parameters
    ----------
    name : string
        Condition name.
    condition : dataframe
        Event information corresponding to a single condition. Must have onset
        (in seconds), duration (in seconds), and value (in arbitrary units)
        columns; and should correspond to event occurrences.
    hrf_model : HRFModel object
        Object that implements `.transform()` to return the predicted
        response.
    n_tp : int
        Number of time points in the final output.
    tr : float
        Time resolution of the output regressor, in seconds.
    res : float
        Sampling resolution at which to construct the regressor and perform
        convolution with the HRF model.
    shift : float
        Proportion of the TR to shift the predicted response when downsampling
        to the output resolution.

    Returns
    -------
    regressor : series
        Output regressor that will form the design matrix column corresponding
        to this event type, indexed by volume.

    """
    onset = condition["onset"]
    duration = condition["duration"]
    value = condition["value"]

    # Define hires and output resolution timepoints
    hires_tps = np.arange(0, n_tp * tr + tr, 1 / res)
    tps = np.arange(n_tp) * tr

    # Initialize the array that will be transformed
    hires_input = np.zeros_like(hires_tps, float)

    # Determine the time points at which each event starts and stops
    onset_at = np.round(onset * res).astype(int)
    offset_at = np.round((onset + duration) * res).astype(int)

    # Insert specified amplitudes for each event duration; events without
    # duration are modeled as an impulse at the onset
    for start, end, value in zip(onset_at, offset_at, value):
        hires_input[start:max(end, start + 1)] = value

    # Transform into the predicted response and downsample to native sampling
    hires_input = pd.Series(hires_input, index=hires_tps, name=name)
    hires_output = hrf_model.transform(hires_input)
    col = interp1d(hires_tps, hires_output)(tps + shift * tr)

    index = pd.RangeIndex(n_tp, name="volume")
    return pd.Series(col, index=index, name=name)


def build_design_matrix(events, hrf_model=None, n_tp=None, tr=1, res=60,
                        shift=0, demean=False):
    """Use design information to build a matrix for a BOLD time series model.

    Parameters
    ----------
    events : dataframe
        Must have `condition` and `onset` (in seconds) columns. Can also have
        `duration` (in seconds, defaulting to 0), and `value` (in arbitrary
        units, defaulting to 1); rows should correspond to event occurrences.
        Column order in the output follows first appearance of each condition.
    hrf_model : HRFModel object
        Object that implements `.transform()` to return the predicted
        response. Defaults to GammaHRF with default parameters.
    n_tp : int
        The number of timepoints in the output.
    tr : float
        Time resolution of the output regressors, in seconds.
    res : float
        Sampling resolution at which to construct the condition regressors and
        perform convolution with the HRF model.
    shift : float
        Proportion of the TR to shift the predicted response when downsampling
        to the output resolution.
    demean : bool
        If True, each column in the output matrix will be mean-centered.

    Returns
    -------
    X : dataframe
        Design matrix with volumes in rows and regressors in columns.

    """
    if hrf_model is None:
        hrf_model = GammaHRF(res=res)

    if n_tp is None:
        err = "Number of timepoints `n_tp` must be specified"
        raise ValueError(err)

    events = events.copy()
    if "duration" not in events:
        events["duration"] = 0
    if "value" not in events:
        events["value"] = 1

    columns = []
    for name, info in events.groupby("condition", sort=False):
        col = condition_to_regressor(name, info, hrf_model,
                                     n_tp, tr, res, shift)
        columns.append(col)

    X = pd.concat(columns, axis=1)
    if demean:
        X -= X.mean()

    return X


def contrast_matrix(contrast, design_matrix):
    """Return a contrast vector that is valid for a given design matrix.

    Parameters
    ----------
    contrast : tuple
        A tuple with (1) the name of the contrast, (2) the involved regressors,
        and (3) the weight to use for each of those regressors.
    design_matrix : dataframe or list of strings
        Design matrix (or list of column names) with regressor names
        corresponding to contrast elements.

    Returns
    -------
    C : array
        Contrast weights in the order of the design matrix columns.

    """
    if isinstance(design_matrix, pd.DataFrame):
        columns = design_matrix.columns.tolist()
    else:
        columns = list(design_matrix)
    C = np.zeros(len(columns))
    _, names, weights = contrast
    for name, weight in zip(names, weights):
        if name not in columns:
            raise ValueError(f"Contrast regressor {name} not in design")
        C[columns.index(name)] = weight
    return C
