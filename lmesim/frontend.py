"""Forward facing tools with information that controls simulations."""
import os
import os.path as op
from textwrap import dedent
import yaml

from traits.api import (HasTraits, Str, Bool, Float, Int,
                        Tuple, List, Enum, Union, Property)

__all__ = ["info"]


class DesignInfo(HasTraits):
    """Information about the timing of the simulated experiment."""
    condition_names = List(
        Str, ["EV1", "EV2", "EV3"],
        desc=dedent("""
        Names of the modeled conditions. The baseline condition is implicit
        and must not be listed.
        """),
    )
    onset_offsets = List(
        Int, [0, 15, 30],
        desc=dedent("""
        Offset (in volumes) of each condition's block within one cycle of the
        experiment, in the order of ``condition_names``.
        """),
    )
    block_length = Int(
        15,
        desc=dedent("""
        Number of volumes that each block lasts.
        """),
    )
    cycle_length = Int(
        60,
        desc=dedent("""
        Number of volumes in one cycle of the experiment; volumes not covered
        by any condition block make up the baseline.
        """),
    )
    n_repeats = Int(
        3,
        desc=dedent("""
        Number of times the cycle is repeated.
        """),
    )
    tr = Float(
        2,
        desc=dedent("""
        The temporal resolution of the simulated acquisition in seconds.
        """),
    )
    n_tp = Property(
        Int, depends_on="cycle_length, n_repeats",
        desc=dedent("""
        The number of volumes in each time series. (Derived from the cycle
        length and number of repeats).
        """),
    )

    def _get_n_tp(self):
        return self.cycle_length * self.n_repeats


class PopulationInfo(HasTraits):
    """Ground-truth parameters of the simulated population."""
    fixed_effects = List(
        Float, [3, 2, 5, 4],
        desc=dedent("""
        Population coefficients: the intercept followed by one value for each
        condition.
        """),
    )
    random_effect_sds = List(
        Float, [1.5, 1, .5, .8],
        desc=dedent("""
        Standard deviation of the subject-specific deviation from each
        population coefficient, in the same order as ``fixed_effects``.
        """),
    )
    noise_sd = Float(
        .5,
        desc=dedent("""
        Standard deviation of the independent noise at each time point.
        """),
    )
    n_subjects = Int(
        10,
        desc=dedent("""
        Number of subjects to simulate.
        """),
    )
    homogeneous = Bool(
        False,
        desc=dedent("""
        If True, every subject shares the population coefficients (all random
        effects are zero). Random draws are still made, so the noise matches a
        heterogeneous simulation with the same seed.
        """),
    )
    random_seed = Union(
        None, Int(),
        default_value=sum(map(ord, "lmesim")),
        desc=dedent("""
        Seed for the random number generator; None gives a fresh random
        state on every run.
        """),
    )


class ModelInfo(HasTraits):
    """Information about how the simulated data are analyzed."""
    reml = Bool(
        False,
        desc=dedent("""
        If True, fit models by restricted maximum likelihood; otherwise use
        maximum likelihood so that models with different fixed effects can be
        compared.
        """),
    )
    correlation = Union(
        None, Enum("ar1"),
        desc=dedent("""
        Residual correlation structure to add to the full model; an extra
        model with this structure is fit and compared when specified.
        """),
    )
    ddf_method = Enum(
        "within", "residual",
        desc=dedent("""
        Rule for the denominator degrees of freedom of contrast t tests.
        """),
    )
    contrasts = List(
        Tuple(Str, List(Str), List(Float)),
        [("EV2-EV1", ["EV1", "EV2"], [-1, 1])],
        desc=dedent("""
        Definitions for fixed effect contrasts. Each item in the list should
        be a tuple with the fields: (1) the name of the contrast, (2) the names
        of the parameters included in the contrast, and (3) the weights to
        apply to the parameters.
        """),
    )


class SimulationInfo(DesignInfo, PopulationInfo, ModelInfo):
    """Combination of all information classes."""
    pass


def load_config(fname):
    """Load simulation parameters from a YAML file."""
    with open(fname) as fid:
        config = yaml.safe_load(fid)
    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise RuntimeError(f"Config file {fname} does not define a mapping")
    return config


def check_extra_vars(config_vars, spec):
    """Raise when unexpected information is defined to avoid errors."""
    allowed = set(spec().trait_names()) - {"trait_added", "trait_modified"}
    extra_vars = set(config_vars) - allowed
    if extra_vars:
        msg = ("The following variables were unexpectedly present in the "
               "simulation configuration: {}".format(", ".join(extra_vars)))
        raise RuntimeError(msg)


def info(config_file=None, **kwargs):
    """Load information to control simulations and analyses.

    Parameters
    ----------
    config_file : string
        Path to a YAML file with simulation parameters. If None, the file
        ``simulation.yaml`` in the directory given by the $LMESIM_DIR
        environment variable is used when it exists.
    kwargs : key, value mappings
        Further parameters that take precedence over the file contents.

    Returns
    -------
    info : SimulationInfo
        This object has traits with the simulation parameters.

    """
    if config_file is None:
        lmesim_dir = os.environ.get("LMESIM_DIR", None)
        if lmesim_dir is not None:
            fname = op.join(lmesim_dir, "simulation.yaml")
            if op.exists(fname):
                config_file = fname

    if config_file is None:
        config = {}
    else:
        config = load_config(config_file)

    check_extra_vars(config, SimulationInfo)
    check_extra_vars(kwargs, SimulationInfo)

    if "n_tp" in config or "n_tp" in kwargs:
        raise RuntimeError("n_tp is derived from cycle_length and n_repeats")

    # YAML has no tuple type, so contrast definitions arrive as lists
    if "contrasts" in config:
        config["contrasts"] = [tuple(c) for c in config["contrasts"]]

    info = (SimulationInfo()
            .trait_set(**config)
            .trait_set(**kwargs))

    return info
