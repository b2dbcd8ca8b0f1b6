"""
Refutation checks for a split-sample correction.

The first battery is informative and passes. The second mixes two items
that track the trait with items that are pure noise, so one half barely
predicts the other and the checks flag a weak first stage.
"""

import numpy as np
import pandas as pd
from scipy.stats import norm

from splitlatent import SplitSampleCorrection

RNG = np.random.default_rng(3)
N = 1_000


def make_data(beta):
    x = RNG.normal(size=N)
    p = norm.cdf(np.outer(x, beta))
    df = pd.DataFrame((RNG.uniform(size=p.shape) < p).astype(float),
                      columns=[f"q{j}" for j in range(len(beta))])
    df["y"] = x + RNG.normal(size=N)
    return df


strong = SplitSampleCorrection(outcome="y", seed=11).fit(make_data(np.full(10, 1.2)))
print(strong.refute().summary())

weak = SplitSampleCorrection(outcome="y", seed=11).fit(make_data(np.r_[1.5, 1.5, np.full(8, 0.02)]))
print(weak.refute().summary())
