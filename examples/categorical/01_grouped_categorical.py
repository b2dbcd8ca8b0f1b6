"""
Categorical indicators, dummy-expanded, with items grouped by survey module.

Each three-level item becomes two dummies. Items from the same module share
a group id so the partition never separates them.
"""

import numpy as np
import pandas as pd

from splitlatent import SplitSampleCorrection

RNG = np.random.default_rng(2)
N = 800
LEVELS = np.array(["disagree", "neutral", "agree"])

x = RNG.normal(size=N)
cols = {}
for j in range(8):
    score = x + RNG.normal(scale=0.8, size=N)
    cols[f"item{j}"] = LEVELS[np.digitize(score, [-0.5, 0.5])]

df = pd.DataFrame(cols)
df["y"] = 0.5 * x + RNG.normal(size=N)

modules = {f"item{j}": f"module{j // 2}" for j in range(8)}

result = SplitSampleCorrection(
    outcome="y", seed=2024, groupings=modules, expand_categories=True
).fit(df)
print(result.summary())
print("Split A modules:", result.partition.split_a)
print("Split B modules:", result.partition.split_b)
