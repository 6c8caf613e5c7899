"""
Synthetic posterior draws for tests that do not need to run the sampler.
"""
import os
import sys

import numpy as np
import pandas as pd
import arviz as az
from scipy.special import expit

sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from glof_risk.model.model_spec import ModelSpec
from glof_risk.model.data_preparation import ModelData, design_matrix, encode_levels
from glof_risk.model.posterior import PosteriorDraws

TOY_SPEC = ModelSpec(
    name="toy",
    response="y",
    terms=("x",),
    group_factors=("group",),
)
LEVELS = ["g1", "g2"]


def toy_frame() -> pd.DataFrame:
    return pd.DataFrame({
        "lake_id": [f"L{i}" for i in range(8)],
        "x": [-1.5, -1.0, -0.5, 0.0, 0.0, 0.5, 1.0, 1.5],
        "group": pd.Categorical(["g1", "g2"] * 4, categories=LEVELS),
        "y": [0, 0, 0, 1, 0, 1, 1, 1],
    })


def toy_model_data(frame: pd.DataFrame = None) -> ModelData:
    frame = toy_frame() if frame is None else frame
    return ModelData(
        spec_name=TOY_SPEC.name,
        frame=frame,
        X=design_matrix(frame, TOY_SPEC.terms),
        y=frame["y"].to_numpy(dtype=int),
        terms=list(TOY_SPEC.terms),
        group_idx={"group": encode_levels(frame["group"], LEVELS)},
        group_levels={"group": list(LEVELS)},
    )


def make_draws(
    intercept: float = -0.5,
    beta: float = 1.0,
    offsets=(-0.3, 0.3),
    noise: float = 0.0,
    n_chains: int = 4,
    n_draws: int = 250,
    n_divergent: int = 0,
    seed: int = 0
) -> PosteriorDraws:
    """
    PosteriorDraws centred on the given parameter values.

    With ``noise=0`` every draw equals the given value, which makes the
    linear predictor exact.
    """
    rng = np.random.default_rng(seed)
    shape = (n_chains, n_draws)

    def around(value):
        return value + noise * rng.normal(size=shape)

    r_group = np.stack([around(o) for o in offsets], axis=-1)
    model_data = toy_model_data()

    eta = (
        around(intercept)[..., None]
        + around(beta)[..., None] * model_data.X[:, 0]
        + r_group[..., model_data.group_idx["group"]]
    )
    p = expit(eta)
    y = model_data.y
    log_lik = np.where(y == 1, np.log(p), np.log1p(-p))

    diverging = np.zeros(shape, dtype=bool)
    diverging.flat[:n_divergent] = True

    idata = az.from_dict(
        posterior={
            "Intercept": around(intercept),
            "b_x": around(beta),
            "sd_group": np.abs(around(0.5)),
            "r_group": r_group,
        },
        log_likelihood={"y": log_lik},
        sample_stats={"diverging": diverging},
        coords={"group": LEVELS, "obs_id": list(range(len(y)))},
        dims={"r_group": ["group"], "y": ["obs_id"]},
    )
    return PosteriorDraws(spec=TOY_SPEC, model_data=model_data, idata=idata)
