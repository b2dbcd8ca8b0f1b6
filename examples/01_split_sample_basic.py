"""
Split-sample correction on a battery of binary indicators.

Ten yes/no items measure an unobserved trait x. The outcome depends on x,
but only the items are observed, so any estimate of x carries measurement
error and the naive OLS slope is attenuated.

True effect of x on y: 1.0
"""

import logging

import numpy as np
import pandas as pd
from scipy.stats import norm

from splitlatent import SplitSampleCorrection

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

RNG = np.random.default_rng(0)
N = 1_000
ITEMS = 10

x     = RNG.normal(size=N)
alpha = RNG.normal(scale=0.5, size=ITEMS)
beta  = RNG.uniform(0.5, 1.5, size=ITEMS)
p     = norm.cdf(alpha + np.outer(x, beta))

df = pd.DataFrame((RNG.uniform(size=p.shape) < p).astype(float),
                  columns=[f"q{j}" for j in range(ITEMS)])
df["y"] = 1.0 * x + RNG.normal(size=N)

result = SplitSampleCorrection(outcome="y", seed=123).fit(df)
print(result.summary())
